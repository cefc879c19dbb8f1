"""
Order endpoints — read projections for the order owner.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.api.deps import get_current_user
from otcdesk.database import get_db
from otcdesk.models.order import OrderStatus
from otcdesk.models.user import User
from otcdesk.schemas.order import OrderListResponse, OrderResponse
from otcdesk.services.order_service import OrderService

router = APIRouter()


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await OrderService(db).list_orders(
        user_id=user.id,
        status=status,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).get_order(order_id, user)
    return OrderResponse.model_validate(order)
