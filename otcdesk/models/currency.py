"""
Currency model — static reference data consumed by every pricing step.

Currencies are created and edited by operators only; the trading flow
never writes to this table.
"""

import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column

from otcdesk.database import Base, pg_enum


class AssetClass(str, enum.Enum):
    FIAT = "fiat"
    CRYPTO = "crypto"


class Currency(Base):
    __tablename__ = "currencies"
    __table_args__ = (
        CheckConstraint("decimals >= 0 AND decimals <= 18", name="ck_currencies_decimals"),
    )

    code: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(10))
    asset_class: Mapped[AssetClass] = mapped_column(
        pg_enum(AssetClass, "assetclass"), nullable=False,
    )
    decimals: Mapped[int] = mapped_column(Integer, default=2)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_fiat(self) -> bool:
        return self.asset_class == AssetClass.FIAT

    @property
    def is_crypto(self) -> bool:
        return self.asset_class == AssetClass.CRYPTO

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01') for 2 decimals."""
        return Decimal(1).scaleb(-self.decimals)

    def __repr__(self) -> str:
        return f"<Currency {self.code} {self.asset_class.value if self.asset_class else 'N/A'}>"


@event.listens_for(Currency, "init")
def _set_currency_defaults(target, args, kwargs):
    if "code" in kwargs:
        kwargs["code"] = kwargs["code"].upper()
    if "decimals" not in kwargs:
        target.decimals = 8 if kwargs.get("asset_class") == AssetClass.CRYPTO else 2
    if "is_active" not in kwargs:
        target.is_active = True
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
