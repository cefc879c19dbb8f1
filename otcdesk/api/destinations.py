"""
Settlement destination endpoints — the verified payout targets a user can
name when accepting a quote.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import get_current_user
from otcdesk.database import get_db
from otcdesk.models.user import User
from otcdesk.schemas.destination import DestinationListResponse, DestinationResponse
from otcdesk.services.destination_registry import SettlementDestinationRegistry

router = APIRouter()


@router.get("/", response_model=DestinationListResponse)
async def list_destinations(
    currency: str = Query(..., min_length=2, max_length=10, examples=["BTC"]),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    destinations = await SettlementDestinationRegistry(db).list_verified_destinations(
        user.id, currency,
    )
    return DestinationListResponse(
        items=[DestinationResponse.from_destination(d) for d in destinations],
        total=len(destinations),
    )
