"""
Order read projections and operator-driven settlement status changes.

Orders are never deleted and their priced fields never change; only
``status``, ``admin_notes`` and ``settlement_reference`` are writable.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import InvalidTransitionError, NotFoundError, UnauthorizedError
from otcdesk.models.order import Order, OrderStatus
from otcdesk.models.user import User
from otcdesk.services.events import EventSink, LifecycleEvent, get_event_sink, order_payload

logger = logging.getLogger(__name__)


class OrderService:

    def __init__(self, db: AsyncSession, events: EventSink | None = None):
        self.db = db
        self.events = events or get_event_sink()

    async def list_orders(
        self,
        user_id: uuid.UUID | None = None,
        status: OrderStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Order], int]:
        filters = []
        if user_id is not None:
            filters.append(Order.user_id == user_id)
        if status is not None:
            filters.append(Order.status == status)

        total = (
            await self.db.execute(select(func.count()).select_from(Order).where(*filters))
        ).scalar_one()
        result = await self.db.execute(
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_order(self, order_id: uuid.UUID, actor: User) -> Order:
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.user_id != actor.id and not actor.is_operator:
            raise UnauthorizedError("You do not have access to this order")
        return order

    async def update_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        operator: User,
        admin_notes: str | None = None,
        settlement_reference: str | None = None,
    ) -> Order:
        """Move an order along its settlement lifecycle. Operator only."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may update order status")

        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")

        old_status = order.status
        try:
            order.transition_to(new_status)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc

        if admin_notes is not None:
            order.admin_notes = admin_notes
        if settlement_reference is not None:
            order.settlement_reference = settlement_reference
        await self.db.flush()

        logger.info(
            "Order %s status %s -> %s by operator %s",
            order.transaction_id, old_status.value, new_status.value, operator.id,
        )
        owner = await self.db.get(User, order.user_id)
        self.events.emit(
            LifecycleEvent.ORDER_STATUS_CHANGED,
            order_payload(order, owner.phone if owner else None),
        )
        return order
