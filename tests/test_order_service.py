"""Tests for order reads and operator settlement status changes."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from otcdesk.core.errors import InvalidTransitionError, NotFoundError, UnauthorizedError
from otcdesk.models.order import Order, OrderStatus
from otcdesk.models.quote import TradeType
from otcdesk.services.events import LifecycleEvent
from otcdesk.services.order_service import OrderService


@pytest.fixture
def order(customer):
    quote_id = uuid.uuid4()
    return Order(
        user_id=customer.id,
        quote_id=quote_id,
        order_type=TradeType.BUY,
        from_currency="ZAR",
        to_currency="BTC",
        from_amount=Decimal("10000"),
        exchange_rate=Decimal("0.00000095"),
        to_amount=Decimal("0.00950000"),
        admin_fee=Decimal("50.00"),
        withdrawal_fee=Decimal("0"),
        total_fee=Decimal("50.00"),
        net_amount=Decimal("0.00950000"),
        crypto_wallet_id=uuid.uuid4(),
    )


class TestGetOrder:

    @pytest.mark.asyncio
    async def test_owner_reads(self, mock_db, order, customer):
        mock_db.get = AsyncMock(return_value=order)
        assert await OrderService(mock_db).get_order(order.id, customer) is order

    @pytest.mark.asyncio
    async def test_stranger_refused(self, mock_db, order, make_user):
        mock_db.get = AsyncMock(return_value=order)
        with pytest.raises(UnauthorizedError):
            await OrderService(mock_db).get_order(order.id, make_user(email="x@example.com"))

    @pytest.mark.asyncio
    async def test_missing(self, mock_db, operator):
        with pytest.raises(NotFoundError):
            await OrderService(mock_db).get_order(uuid.uuid4(), operator)


class TestListOrders:

    @pytest.mark.asyncio
    async def test_returns_rows_and_total(self, mock_db, order, result_with):
        mock_db.execute = AsyncMock(side_effect=[
            result_with(scalar=1),
            result_with(rows=[order]),
        ])

        orders, total = await OrderService(mock_db).list_orders(
            status=OrderStatus.PAYMENT_PENDING,
        )

        assert orders == [order]
        assert total == 1


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_confirm_payment(self, mock_db, order, operator, customer, event_sink):
        mock_db.get = AsyncMock(side_effect=[order, customer])

        result = await OrderService(mock_db, event_sink).update_status(
            order.id, OrderStatus.PAYMENT_CONFIRMED, operator,
            admin_notes="EFT received", settlement_reference="FNB-88231",
        )

        assert result.status == OrderStatus.PAYMENT_CONFIRMED
        assert result.payment_confirmed_at is not None
        assert result.admin_notes == "EFT received"
        assert result.settlement_reference == "FNB-88231"
        event, payload = event_sink.emit.call_args.args
        assert event == LifecycleEvent.ORDER_STATUS_CHANGED
        assert payload["phone"] == customer.phone
        assert payload["status"] == "payment_confirmed"

    @pytest.mark.asyncio
    async def test_full_settlement_path(self, mock_db, order, operator, customer):
        mock_db.get = AsyncMock(side_effect=[order, customer] * 3)
        service = OrderService(mock_db)

        for status in (
            OrderStatus.PAYMENT_CONFIRMED, OrderStatus.PROCESSING, OrderStatus.COMPLETED,
        ):
            await service.update_status(order.id, status, operator)

        assert order.status == OrderStatus.COMPLETED
        assert order.completed_at is not None

    @pytest.mark.asyncio
    async def test_priced_fields_untouched(self, mock_db, order, operator, customer):
        mock_db.get = AsyncMock(side_effect=[order, customer])
        before = order.net_amount

        await OrderService(mock_db).update_status(order.id, OrderStatus.CANCELLED, operator)

        assert order.net_amount == before

    @pytest.mark.asyncio
    async def test_terminal_status_is_final(self, mock_db, order, operator):
        order.status = OrderStatus.COMPLETED
        mock_db.get = AsyncMock(return_value=order)
        with pytest.raises(InvalidTransitionError):
            await OrderService(mock_db).update_status(order.id, OrderStatus.PROCESSING, operator)

    @pytest.mark.asyncio
    async def test_cannot_skip_payment(self, mock_db, order, operator):
        mock_db.get = AsyncMock(return_value=order)
        with pytest.raises(InvalidTransitionError):
            await OrderService(mock_db).update_status(order.id, OrderStatus.COMPLETED, operator)

    @pytest.mark.asyncio
    async def test_customer_cannot_update(self, mock_db, order, customer):
        mock_db.get = AsyncMock(return_value=order)
        with pytest.raises(UnauthorizedError):
            await OrderService(mock_db).update_status(
                order.id, OrderStatus.PAYMENT_CONFIRMED, customer,
            )

    @pytest.mark.asyncio
    async def test_missing_order(self, mock_db, operator):
        with pytest.raises(NotFoundError):
            await OrderService(mock_db).update_status(
                uuid.uuid4(), OrderStatus.CANCELLED, operator,
            )
