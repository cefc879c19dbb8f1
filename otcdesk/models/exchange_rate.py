"""
ExchangeRate model — the persisted derived rate for an ordered currency pair.

Rows are written only by the rate refresh (single-statement upsert per pair)
or by an operator markup override; the pricing path only reads them.
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
from otcdesk.schemas.rate import RatePair

RATE_NUMERIC = Numeric(precision=38, scale=18)
MARKUP_NUMERIC = Numeric(precision=10, scale=6)


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rates_pair"),
        CheckConstraint("base_rate > 0", name="ck_exchange_rates_base_positive"),
        CheckConstraint(
            "buy_markup >= 0 AND sell_markup >= 0",
            name="ck_exchange_rates_markups_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    from_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    to_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )

    base_rate: Mapped[Decimal] = mapped_column(RATE_NUMERIC, nullable=False)
    buy_markup: Mapped[Decimal] = mapped_column(MARKUP_NUMERIC, nullable=False)
    sell_markup: Mapped[Decimal] = mapped_column(MARKUP_NUMERIC, nullable=False)
    final_buy_rate: Mapped[Decimal] = mapped_column(RATE_NUMERIC, nullable=False)
    final_sell_rate: Mapped[Decimal] = mapped_column(RATE_NUMERIC, nullable=False)

    # True once an operator pins this pair's markups; refreshes keep them
    custom_markup: Mapped[bool] = mapped_column(Boolean, default=False)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_rate_pair(self) -> RatePair:
        return RatePair.model_validate(self)

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate {self.from_currency}/{self.to_currency} "
            f"buy={self.final_buy_rate} sell={self.final_sell_rate}>"
        )


@event.listens_for(ExchangeRate, "init")
def _set_rate_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "custom_markup" not in kwargs:
        target.custom_markup = False
    if "last_updated" not in kwargs:
        target.last_updated = datetime.now(timezone.utc)
