"""
Pydantic schemas for derived exchange rates and refresh reports.

``RatePair`` is immutable: a refresh replaces the whole pair, so readers
see either the previous pair or the new one, never a mix of both.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class RatePair(BaseModel):
    """Derived buy/sell rates for an ordered currency pair."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    from_currency: str
    to_currency: str
    base_rate: Decimal
    buy_markup: Decimal
    sell_markup: Decimal
    final_buy_rate: Decimal
    final_sell_rate: Decimal
    last_updated: datetime

    @property
    def pair(self) -> str:
        return f"{self.from_currency}/{self.to_currency}"


class RateListResponse(BaseModel):
    items: list[RatePair]
    total: int


class RefreshReport(BaseModel):
    """Outcome of a full rate refresh; failed pairs keep their previous rate."""
    refreshed: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return not self.failed


class MarkupUpdate(BaseModel):
    """Operator override of one pair's markups (fractions, e.g. 0.02 = 2%)."""
    buy_markup: Decimal = Field(..., ge=0, lt=1, examples=["0.02"])
    sell_markup: Decimal = Field(..., ge=0, lt=1, examples=["0.02"])
