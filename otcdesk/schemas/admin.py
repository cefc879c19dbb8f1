"""
Pydantic schemas for operator-only endpoints.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from otcdesk.models.quote import TradeType


class PrivilegedQuoteRequest(BaseModel):
    """Operator-set rate and fees for a privileged user."""
    user_id: UUID
    trade_type: TradeType
    from_currency: str = Field(..., min_length=2, max_length=10, examples=["BTC"])
    to_currency: str = Field(..., min_length=2, max_length=10, examples=["ZAR"])
    amount: Decimal = Field(..., examples=["2.5"])
    exchange_rate: Decimal = Field(..., examples=["1210000"])
    admin_fee: Decimal = Field(Decimal("0"), examples=["0"])
    withdrawal_fee: Decimal = Field(Decimal("0"), examples=["50"])
    special_rate_reason: str | None = Field(None, max_length=1000)
    admin_notes: str | None = Field(None, max_length=2000)
    expires_in_minutes: int | None = Field(None, ge=1, le=10080)

    @field_validator("from_currency", "to_currency")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class PrivilegedFlagUpdate(BaseModel):
    is_privileged: bool
    notes: str | None = Field(None, max_length=1000)


class PrivilegedFlagResponse(BaseModel):
    user_id: UUID
    is_privileged: bool
    notes: str | None


class SettingUpdate(BaseModel):
    value: str = Field(..., min_length=1, max_length=255, examples=["0.005"])


class SettingsResponse(BaseModel):
    settings: dict[str, str]


class TradingLimitUpdate(BaseModel):
    user_id: UUID
    currency: str = Field(..., min_length=2, max_length=10, examples=["ZAR"])
    daily_limit: Decimal = Field(..., ge=0, examples=["100000"])
    monthly_limit: Decimal = Field(..., ge=0, examples=["1000000"])
    is_active: bool = True


class TradingLimitResponse(BaseModel):
    user_id: UUID
    currency: str
    daily_limit: Decimal
    monthly_limit: Decimal
    daily_used: Decimal
    monthly_used: Decimal
    remaining_daily: Decimal
    remaining_monthly: Decimal
    is_active: bool
