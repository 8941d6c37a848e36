"""
Per-identity quota ledger.

``admit`` decides whether an identity may run one more generation and
``record_usage`` charges it afterwards. Records are created lazily: the
first ``admit`` for an unknown identity commits a fresh FREE record even
when the request is later denied for other reasons.

Two quota windows are supported (``QUOTA_RESET_POLICY``):

* ``calendar_day``: the counter resets when the UTC date of the last
  request differs from today.
* ``rolling_24h``: the counter resets once 24 hours have elapsed since the
  last request.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gateway.app.db.models import Tier, UserRecord
from gateway.app.db.repo.users_repo import create_record, get_record_by_identity, set_tier

logger = logging.getLogger("gateway.quota")

ROLLING_WINDOW = timedelta(hours=24)


class Decision(str, enum.Enum):
    ADMIT = "ADMIT"
    DENY_BANNED = "DENY_BANNED"
    DENY_QUOTA_EXCEEDED = "DENY_QUOTA_EXCEEDED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def window_expired(last: Optional[datetime], now: datetime, policy: str) -> bool:
    """Return True when the quota window containing ``last`` is over at ``now``."""
    last = as_utc(last)
    if last is None:
        return True
    if policy == "rolling_24h":
        return now - last >= ROLLING_WINDOW
    return last.date() != now.date()


class QuotaLedger:
    def __init__(
        self,
        free_daily_limit: int = 3,
        reset_policy: str = "calendar_day",
        premium_duration_days: int = 30,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.free_daily_limit = free_daily_limit
        self.reset_policy = reset_policy
        self.premium_duration = timedelta(days=premium_duration_days)
        self._clock = clock

    def now(self) -> datetime:
        return as_utc(self._clock())

    def _create(self, db: Session, identity: str, **fields) -> tuple[UserRecord, bool]:
        """Insert a record, or fetch the one a concurrent request just inserted.

        Returns ``(record, created)``.
        """
        try:
            record = create_record(db, identity, last_request_timestamp=self.now(), **fields)
            db.commit()
        except IntegrityError:
            db.rollback()
            record = get_record_by_identity(db, identity)
            if record is None:
                raise
            logger.info("Usage record created concurrently", extra={"identity": identity})
            return record, False
        return record, True

    def get_or_create(self, db: Session, identity: str) -> UserRecord:
        """Fetch the record for ``identity``, committing a fresh FREE one if absent."""
        record = get_record_by_identity(db, identity)
        if record is None:
            record, created = self._create(db, identity)
            if created:
                logger.info("Created usage record", extra={"identity": identity})
        return record

    def admit(self, db: Session, identity: str) -> Decision:
        record = self.get_or_create(db, identity)

        if record.tier == Tier.BANNED:
            return Decision.DENY_BANNED

        if record.requests_made and window_expired(record.last_request_timestamp, self.now(), self.reset_policy):
            record.requests_made = 0
            db.commit()
            logger.debug("Quota window reset", extra={"identity": identity, "policy": self.reset_policy})

        if record.tier == Tier.FREE and record.requests_made >= self.free_daily_limit:
            return Decision.DENY_QUOTA_EXCEEDED

        return Decision.ADMIT

    def record_usage(self, db: Session, identity: str) -> UserRecord:
        """Charge one generation to ``identity``. Call only after ``ADMIT``."""
        record = self.get_or_create(db, identity)
        record.requests_made += 1
        record.last_request_timestamp = self.now()
        db.commit()
        return record

    def upgrade(self, db: Session, identity: str) -> UserRecord:
        """Upsert ``identity`` as PAID with a fresh premium expiration."""
        now = self.now()
        expiration = now + self.premium_duration
        record = get_record_by_identity(db, identity)
        if record is None:
            record, created = self._create(db, identity, tier=Tier.PAID, premium_expiration=expiration)
        else:
            created = False
        if not created:
            record.tier = Tier.PAID
            record.premium_expiration = expiration
            db.commit()
        logger.info("Identity upgraded", extra={"identity": identity, "premium_expiration": expiration.isoformat()})
        return record

    def ban(self, db: Session, identity: str) -> Optional[UserRecord]:
        """Mark ``identity`` BANNED. Returns None for unknown identities."""
        record = get_record_by_identity(db, identity)
        if record is None:
            return None
        set_tier(db, record, Tier.BANNED)
        db.commit()
        logger.info("Identity banned", extra={"identity": identity})
        return record

    def lookup(self, db: Session, identity: str) -> Optional[UserRecord]:
        return get_record_by_identity(db, identity)
