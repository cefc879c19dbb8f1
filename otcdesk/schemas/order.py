"""
Pydantic schemas for orders and operator status updates.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from otcdesk.models.order import OrderStatus
from otcdesk.models.quote import TradeType


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transaction_id: str
    quote_id: UUID
    user_id: UUID
    order_type: TradeType
    from_currency: str
    to_currency: str
    from_amount: Decimal
    exchange_rate: Decimal
    to_amount: Decimal
    admin_fee: Decimal
    withdrawal_fee: Decimal
    total_fee: Decimal
    net_amount: Decimal
    bank_account_id: UUID | None
    crypto_wallet_id: UUID | None
    status: OrderStatus
    settlement_reference: str | None
    payment_confirmed_at: datetime | None
    completed_at: datetime | None
    created_at: datetime


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    admin_notes: str | None = Field(None, max_length=2000)
    settlement_reference: str | None = Field(None, max_length=100, examples=["FNB-20260418-0042"])
