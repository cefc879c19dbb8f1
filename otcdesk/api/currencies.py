"""
Currency catalog endpoints.

Anyone authenticated may list active currencies; only operators may
add or edit catalog entries.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import get_current_user, require_operator
from otcdesk.database import get_db
from otcdesk.models.user import User
from otcdesk.schemas.currency import CurrencyListResponse, CurrencyResponse, CurrencyUpsertRequest
from otcdesk.services.currency_service import CurrencyService

router = APIRouter()


@router.get("/", response_model=CurrencyListResponse)
async def list_currencies(
    include_inactive: bool = Query(False, description="Operators only"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    currencies = await CurrencyService(db).list_currencies(
        include_inactive=include_inactive and user.is_operator,
    )
    return CurrencyListResponse(
        items=[CurrencyResponse.model_validate(c) for c in currencies],
        total=len(currencies),
    )


@router.put("/{code}", response_model=CurrencyResponse)
async def upsert_currency(
    code: str,
    payload: CurrencyUpsertRequest,
    operator: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    """Create or update a currency. Asset class cannot change once set."""
    currency = await CurrencyService(db).upsert_currency(
        code,
        name=payload.name,
        symbol=payload.symbol,
        asset_class=payload.asset_class,
        decimals=payload.decimals,
        is_active=payload.is_active,
        operator=operator,
    )
    return CurrencyResponse.model_validate(currency)
