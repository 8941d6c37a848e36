from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gateway.app.api.deps import get_ledger
from gateway.app.config.settings import settings
from gateway.app.core.errors import AuthorizationError, NotFoundError, ValidationError
from gateway.app.db.models import Tier, UserRecord
from gateway.app.db.session import get_db
from gateway.app.services.identity import normalize_identity
from gateway.app.services.quota_service import QuotaLedger, as_utc

router = APIRouter(tags=["users"])


def _isoformat(value) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def record_projection(record: UserRecord) -> dict:
    return {
        "identity": record.identity,
        "tier": record.tier.value,
        "requestsMade": record.requests_made,
        "lastRequestTimestamp": _isoformat(record.last_request_timestamp),
        "premiumExpiration": _isoformat(record.premium_expiration),
    }


def _lookup_identity(identity: str) -> str:
    """Path-keyed endpoints reject malformed identities with 400."""
    key = normalize_identity(identity, settings.identity_mode)
    if key is None:
        raise ValidationError("Invalid identity.", code="INVALID_IDENTITY")
    return key


@router.get("/add")
def add_premium(
    id: Optional[str] = None,
    ip: Optional[str] = None,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    identity = ip if settings.identity_mode == "ip" else id
    if not identity:
        raise ValidationError("Identity is required.", code="MISSING_PARAMS")
    key = normalize_identity(identity, settings.identity_mode)
    if key is None:
        raise AuthorizationError("Invalid identity.", code="INVALID_IDENTITY")

    ledger.upgrade(db, key)
    return {"code": 200, "message": "Account upgraded to premium successfully."}


@router.get("/check/{identity}")
def check_tier(
    identity: str,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    record = ledger.lookup(db, _lookup_identity(identity))
    if record is None:
        raise NotFoundError()
    # Only PAID is reported as such; BANNED reads as FREE.
    return {"msg": Tier.PAID.value if record.tier == Tier.PAID else Tier.FREE.value}


@router.get("/info/{identity}")
def user_info(
    identity: str,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    record = ledger.lookup(db, _lookup_identity(identity))
    if record is None:
        raise NotFoundError()
    return record_projection(record)


@router.get("/ban/{identity}")
def ban_user(
    identity: str,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    record = ledger.ban(db, _lookup_identity(identity))
    if record is None:
        raise NotFoundError()
    return {"message": "User banned successfully."}
