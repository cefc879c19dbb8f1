"""
Operator endpoints.

Privileged quote issuance, quote and order oversight, privileged-flag
management, runtime pricing settings and trading limits. Every route
requires the operator role.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import require_operator
from otcdesk.api.quotes import build_quote_response
from otcdesk.database import get_db
from otcdesk.models.order import OrderStatus
from otcdesk.models.quote import QuoteOrigin, QuoteStatus
from otcdesk.models.user import User
from otcdesk.redis_client import get_redis
from otcdesk.schemas.admin import (
    PrivilegedFlagResponse,
    PrivilegedFlagUpdate,
    PrivilegedQuoteRequest,
    SettingsResponse,
    SettingUpdate,
    TradingLimitResponse,
    TradingLimitUpdate,
)
from otcdesk.schemas.order import OrderListResponse, OrderResponse, OrderStatusUpdate
from otcdesk.schemas.quote import QuoteListResponse, QuoteResponse
from otcdesk.services.limits_service import TradingLimitsLedger
from otcdesk.services.order_service import OrderService
from otcdesk.services.privileged_quote_service import PrivilegedQuoteService
from otcdesk.services.quote_service import QuoteService
from otcdesk.services.settings_service import SettingsService

router = APIRouter()


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


@router.post(
    "/privileged-quotes",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_privileged_quote(
    payload: PrivilegedQuoteRequest,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Issue a manual-rate quote to a privileged user."""
    quote = await PrivilegedQuoteService(db, redis).issue(
        operator,
        payload.user_id,
        payload.trade_type,
        payload.from_currency,
        payload.to_currency,
        payload.amount,
        payload.exchange_rate,
        admin_fee=payload.admin_fee,
        withdrawal_fee=payload.withdrawal_fee,
        special_rate_reason=payload.special_rate_reason,
        admin_notes=payload.admin_notes,
        expires_in_minutes=payload.expires_in_minutes,
    )
    return build_quote_response(quote, include_admin_notes=True)


@router.get("/quotes", response_model=QuoteListResponse)
async def list_all_quotes(
    quote_status: QuoteStatus | None = Query(None, alias="status"),
    origin: QuoteOrigin | None = Query(None),
    user_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """All quotes, filtered by effective status (overdue pending counts as expired)."""
    quotes, total = await QuoteService(db, redis).list_quotes(
        status=quote_status,
        user_id=user_id,
        origin=origin,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return QuoteListResponse(
        items=[build_quote_response(q, include_admin_notes=True) for q in quotes],
        total=total,
    )


@router.post("/quotes/{quote_id}/cancel", response_model=QuoteResponse)
async def cancel_quote(
    quote_id: UUID,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    quote = await QuoteService(db, redis).reject(quote_id, operator)
    return build_quote_response(quote, include_admin_notes=True)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.patch("/users/{user_id}/privileged", response_model=PrivilegedFlagResponse)
async def set_privileged(
    user_id: UUID,
    payload: PrivilegedFlagUpdate,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    user = await PrivilegedQuoteService(db, redis).set_privileged(
        user_id, payload.is_privileged, payload.notes, operator,
    )
    return PrivilegedFlagResponse(
        user_id=user.id, is_privileged=user.is_privileged, notes=user.privileged_notes,
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    order_status: OrderStatus | None = Query(None, alias="status"),
    user_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await OrderService(db).list_orders(
        user_id=user_id,
        status=order_status,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    """Record an off-band settlement step (payment received, payout sent, ...)."""
    order = await OrderService(db).update_status(
        order_id,
        payload.status,
        operator,
        admin_notes=payload.admin_notes,
        settlement_reference=payload.settlement_reference,
    )
    return OrderResponse.model_validate(order)


# ---------------------------------------------------------------------------
# Settings and limits
# ---------------------------------------------------------------------------


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    """Effective pricing configuration (stored overrides on top of defaults)."""
    return SettingsResponse(settings=await SettingsService(db).effective_settings())


@router.put("/settings/{key}", response_model=SettingsResponse)
async def update_setting(
    key: str,
    payload: SettingUpdate,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    svc = SettingsService(db)
    await svc.update_setting(key, payload.value, operator)
    return SettingsResponse(settings=await svc.effective_settings())


@router.put("/limits", response_model=TradingLimitResponse)
async def set_trading_limit(
    payload: TradingLimitUpdate,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    limit = await TradingLimitsLedger(db).set_limit(
        payload.user_id,
        payload.currency,
        payload.daily_limit,
        payload.monthly_limit,
        operator,
        is_active=payload.is_active,
    )
    return TradingLimitResponse(
        user_id=limit.user_id,
        currency=limit.currency,
        daily_limit=limit.daily_limit,
        monthly_limit=limit.monthly_limit,
        daily_used=limit.daily_used,
        monthly_used=limit.monthly_used,
        remaining_daily=limit.remaining_daily(),
        remaining_monthly=limit.remaining_monthly(),
        is_active=limit.is_active,
    )
