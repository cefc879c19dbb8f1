"""
Pydantic schemas for price previews, quote creation and quote actions.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from otcdesk.models.quote import QuoteOrigin, QuoteStatus, TradeType


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class QuoteRequest(BaseModel):
    """Trade intent shared by preview and quote generation."""
    trade_type: TradeType = Field(..., examples=["buy"])
    from_currency: str = Field(..., min_length=2, max_length=10, examples=["ZAR"])
    to_currency: str = Field(..., min_length=2, max_length=10, examples=["BTC"])
    amount: Decimal = Field(..., examples=["10000"])

    @field_validator("from_currency", "to_currency")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class AcceptQuoteRequest(BaseModel):
    destination_id: UUID | None = Field(
        None, description="Verified bank account (sell) or crypto wallet (buy/swap)",
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class PricingResponse(BaseModel):
    """Fee breakdown; admin_fee is in from_currency, the rest in to_currency."""
    trade_type: TradeType
    from_currency: str
    to_currency: str
    from_amount: Decimal
    exchange_rate: Decimal
    to_amount: Decimal
    admin_fee: Decimal
    withdrawal_fee: Decimal
    total_fee: Decimal
    net_amount: Decimal


class QuoteResponse(BaseModel):
    id: UUID
    user_id: UUID
    origin: QuoteOrigin
    issued_by: UUID | None
    quote_type: TradeType
    from_currency: str
    to_currency: str
    from_amount: Decimal
    exchange_rate: Decimal
    to_amount: Decimal
    admin_fee: Decimal
    withdrawal_fee: Decimal
    total_fee: Decimal
    net_amount: Decimal
    status: QuoteStatus
    expires_at: datetime
    accepted_at: datetime | None
    closed_at: datetime | None
    special_rate_reason: str | None
    admin_notes: str | None = None
    created_at: datetime


class QuoteListResponse(BaseModel):
    items: list[QuoteResponse]
    total: int
