"""
Quote endpoints — preview, generate, list, accept and reject.

Every response reports the effective status: a pending quote past its
``expires_at`` is shown as expired even before anything rewrites it.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import get_current_user
from otcdesk.database import get_db
from otcdesk.models.quote import Quote
from otcdesk.models.user import User
from otcdesk.redis_client import get_redis
from otcdesk.schemas.order import OrderResponse
from otcdesk.schemas.quote import (
    AcceptQuoteRequest,
    PricingResponse,
    QuoteListResponse,
    QuoteRequest,
    QuoteResponse,
)
from otcdesk.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

router = APIRouter()


def build_quote_response(quote: Quote, include_admin_notes: bool = False) -> QuoteResponse:
    """Build a QuoteResponse from an ORM Quote, with lazy expiry applied."""
    now = datetime.now(timezone.utc)
    return QuoteResponse(
        id=quote.id,
        user_id=quote.user_id,
        origin=quote.origin,
        issued_by=quote.issued_by,
        quote_type=quote.quote_type,
        from_currency=quote.from_currency,
        to_currency=quote.to_currency,
        from_amount=quote.from_amount,
        exchange_rate=quote.exchange_rate,
        to_amount=quote.to_amount,
        admin_fee=quote.admin_fee,
        withdrawal_fee=quote.withdrawal_fee,
        total_fee=quote.total_fee,
        net_amount=quote.net_amount,
        status=quote.effective_status(now),
        expires_at=quote.expires_at,
        accepted_at=quote.accepted_at,
        closed_at=quote.closed_at,
        special_rate_reason=quote.special_rate_reason,
        admin_notes=quote.admin_notes if include_admin_notes else None,
        created_at=quote.created_at,
    )


@router.post("/preview", response_model=PricingResponse)
async def preview_quote(
    payload: QuoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Price a trade without committing to it. Nothing is stored."""
    result = await QuoteService(db, redis).preview(
        payload.trade_type, payload.from_currency, payload.to_currency, payload.amount,
    )
    return PricingResponse(
        trade_type=result.trade_type,
        from_currency=result.from_currency,
        to_currency=result.to_currency,
        from_amount=result.from_amount,
        **result.priced_fields(),
    )


@router.post("/", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    payload: QuoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Lock the current price for the quote validity window (15 minutes by default)."""
    quote = await QuoteService(db, redis).generate(
        user, payload.trade_type, payload.from_currency, payload.to_currency, payload.amount,
    )
    return build_quote_response(quote)


@router.get("/", response_model=QuoteListResponse)
async def list_active_quotes(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    quotes = await QuoteService(db, redis).list_active(user.id)
    return QuoteListResponse(
        items=[build_quote_response(q) for q in quotes],
        total=len(quotes),
    )


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    quote = await QuoteService(db, redis).get_quote(quote_id, user)
    return build_quote_response(quote, include_admin_notes=user.is_operator)


@router.post(
    "/{quote_id}/accept",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def accept_quote(
    quote_id: UUID,
    payload: AcceptQuoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Accept a pending quote and create its order.

    409 if the quote was already accepted, rejected, cancelled or has
    expired; the client should request a new quote.
    """
    order = await QuoteService(db, redis).accept(quote_id, user, payload.destination_id)
    return OrderResponse.model_validate(order)


@router.post("/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote(
    quote_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    quote = await QuoteService(db, redis).reject(quote_id, user)
    return build_quote_response(quote)
