from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class Tier(str, enum.Enum):
    FREE = "FREE"
    PAID = "PAID"
    BANNED = "BANNED"


class UserRecord(Base):
    """Tier and usage state for one identity (device id or IP address)."""

    __tablename__ = "user_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    last_request_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    requests_made: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier: Mapped[Tier] = mapped_column(
        Enum(Tier, name="user_tier", native_enum=False, length=16),
        nullable=False,
        default=Tier.FREE,
    )
    # Informational only; nothing downgrades a PAID record when this passes.
    premium_expiration: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now()
    )
