from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from gateway.app.db.models import Tier, UserRecord


def create_record(
    session: Session,
    identity: str,
    last_request_timestamp: datetime,
    tier: Tier = Tier.FREE,
    premium_expiration: Optional[datetime] = None,
) -> UserRecord:
    """Create a new usage record with a zeroed counter."""
    record = UserRecord(
        identity=identity,
        last_request_timestamp=last_request_timestamp,
        requests_made=0,
        tier=tier,
        premium_expiration=premium_expiration,
    )
    session.add(record)
    session.flush()  # To get the ID
    return record


def get_record_by_identity(session: Session, identity: str) -> Optional[UserRecord]:
    """Get a usage record by identity."""
    return session.query(UserRecord).filter(UserRecord.identity == identity).first()


def set_tier(session: Session, record: UserRecord, tier: Tier) -> None:
    """Update the tier of a record."""
    record.tier = tier
    session.flush()
