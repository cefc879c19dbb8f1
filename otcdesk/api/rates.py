"""
Exchange rate endpoints.

Reads serve the most recently stored derived rates (Redis, then
PostgreSQL) and never call the market-data feed. Refresh and markup
overrides are operator-only.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import get_current_user, require_operator
from otcdesk.database import get_db
from otcdesk.models.user import User
from otcdesk.redis_client import get_redis
from otcdesk.schemas.rate import MarkupUpdate, RateListResponse, RatePair, RefreshReport
from otcdesk.services.rate_service import RateService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=RateListResponse)
async def list_rates(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    rates = await RateService(db, redis).list_rates()
    return RateListResponse(items=rates, total=len(rates))


@router.get("/{from_currency}/{to_currency}", response_model=RatePair)
async def get_rate(
    from_currency: str,
    to_currency: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Current derived buy/sell rates for one pair (404 if never priced)."""
    return await RateService(db, redis).get_rate(from_currency, to_currency)


@router.post("/refresh", response_model=RefreshReport)
async def refresh_rates(
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Re-pull base rates for every active pair.

    Pairs the feed could not price keep their previous rate and are
    listed under ``failed``; the request itself still succeeds.
    """
    return await RateService(db, redis).refresh_all(actor=operator)


@router.patch("/{from_currency}/{to_currency}/markups", response_model=RatePair)
async def set_markups(
    from_currency: str,
    to_currency: str,
    payload: MarkupUpdate,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return await RateService(db, redis).set_markups(
        from_currency, to_currency, payload.buy_markup, payload.sell_markup, operator,
    )
