"""
TradingLimit model — per-user, per-currency daily and monthly caps.

Usage counters are reset lazily when a reservation is attempted after a
UTC day / month boundary.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from otcdesk.database import Base

AMOUNT_NUMERIC = Numeric(precision=38, scale=18)


class TradingLimit(Base):
    __tablename__ = "trading_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "currency", name="uq_trading_limits_user_currency"),
        CheckConstraint(
            "daily_limit >= 0 AND monthly_limit >= 0",
            name="ck_trading_limits_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )

    daily_limit: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    monthly_limit: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    daily_used: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, default=Decimal("0"))
    monthly_used: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    last_reset_daily: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    last_reset_monthly: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def remaining_daily(self) -> Decimal:
        return max(Decimal("0"), self.daily_limit - self.daily_used)

    def remaining_monthly(self) -> Decimal:
        return max(Decimal("0"), self.monthly_limit - self.monthly_used)

    def __repr__(self) -> str:
        return (
            f"<TradingLimit {self.currency} "
            f"daily={self.daily_used}/{self.daily_limit} "
            f"monthly={self.monthly_used}/{self.monthly_limit}>"
        )


@event.listens_for(TradingLimit, "init")
def _set_limit_defaults(target, args, kwargs):
    now = datetime.now(timezone.utc)
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "daily_used" not in kwargs:
        target.daily_used = Decimal("0")
    if "monthly_used" not in kwargs:
        target.monthly_used = Decimal("0")
    if "is_active" not in kwargs:
        target.is_active = True
    if "last_reset_daily" not in kwargs:
        target.last_reset_daily = now
    if "last_reset_monthly" not in kwargs:
        target.last_reset_monthly = now
    if "updated_at" not in kwargs:
        target.updated_at = now
