"""Tests for turning an accepted quote into its order."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from otcdesk.core.errors import (
    AlreadyAcceptedError,
    DestinationMismatchError,
    DestinationRequiredError,
    InvalidTransitionError,
)
from otcdesk.models.destination import BankAccount, CryptoWallet
from otcdesk.models.order import OrderStatus
from otcdesk.models.quote import QuoteStatus, TradeType
from otcdesk.services.order_materializer import OrderMaterializer


@pytest.fixture
def make_wallet(customer):
    def _wallet(**overrides) -> CryptoWallet:
        defaults = dict(
            user_id=customer.id,
            currency="BTC",
            wallet_address="bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq",
            is_verified=True,
        )
        defaults.update(overrides)
        return CryptoWallet(**defaults)
    return _wallet


@pytest.fixture
def bank_account(customer):
    account = BankAccount(
        user_id=customer.id,
        currency="ZAR",
        account_holder_name="Thandi Nkosi",
        bank_name="FNB",
        is_verified=True,
    )
    account.set_account_number("62812345678")
    return account


def _materializer(mock_db, destination):
    registry = MagicMock()
    registry.get_destination = AsyncMock(return_value=destination)
    return OrderMaterializer(mock_db, registry=registry)


class TestResolveDestination:

    @pytest.mark.asyncio
    async def test_buy_to_verified_wallet(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet()
        result = await _materializer(mock_db, wallet).resolve_destination(
            make_quote(customer), wallet.id,
        )
        assert result is wallet

    @pytest.mark.asyncio
    async def test_sell_to_bank_account(self, mock_db, make_quote, customer, bank_account):
        quote = make_quote(
            customer, quote_type=TradeType.SELL, from_currency="BTC", to_currency="ZAR",
        )
        result = await _materializer(mock_db, bank_account).resolve_destination(
            quote, bank_account.id,
        )
        assert result is bank_account

    @pytest.mark.asyncio
    async def test_missing_destination(self, mock_db, make_quote, customer):
        with pytest.raises(DestinationRequiredError):
            await _materializer(mock_db, None).resolve_destination(make_quote(customer), None)

    @pytest.mark.asyncio
    async def test_unknown_destination(self, mock_db, make_quote, customer):
        with pytest.raises(DestinationMismatchError):
            await _materializer(mock_db, None).resolve_destination(
                make_quote(customer), uuid.uuid4(),
            )

    @pytest.mark.asyncio
    async def test_buy_cannot_pay_to_bank_account(
        self, mock_db, make_quote, customer, bank_account,
    ):
        with pytest.raises(DestinationMismatchError) as exc_info:
            await _materializer(mock_db, bank_account).resolve_destination(
                make_quote(customer), bank_account.id,
            )
        assert "crypto wallet" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_wrong_currency(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet(currency="ETH")
        with pytest.raises(DestinationMismatchError):
            await _materializer(mock_db, wallet).resolve_destination(
                make_quote(customer), wallet.id,
            )

    @pytest.mark.asyncio
    async def test_unverified(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet(is_verified=False)
        with pytest.raises(DestinationMismatchError):
            await _materializer(mock_db, wallet).resolve_destination(
                make_quote(customer), wallet.id,
            )

    @pytest.mark.asyncio
    async def test_other_users_wallet(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet(user_id=uuid.uuid4())
        with pytest.raises(DestinationMismatchError):
            await _materializer(mock_db, wallet).resolve_destination(
                make_quote(customer), wallet.id,
            )


class TestMaterialize:

    @pytest.mark.asyncio
    async def test_copies_priced_fields(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet()
        quote = make_quote(customer, status=QuoteStatus.ACCEPTED)

        order = await _materializer(mock_db, wallet).materialize(quote, wallet)

        assert order.quote_id == quote.id
        assert order.user_id == customer.id
        assert order.order_type == TradeType.BUY
        assert order.from_amount == Decimal("10000")
        assert order.exchange_rate == quote.exchange_rate
        assert order.admin_fee == quote.admin_fee
        assert order.total_fee == quote.total_fee
        assert order.net_amount == quote.net_amount
        assert order.status == OrderStatus.PAYMENT_PENDING
        assert order.crypto_wallet_id == wallet.id
        assert order.destination_id == wallet.id
        mock_db.add.assert_called_once_with(order)

    @pytest.mark.asyncio
    async def test_bank_destination(self, mock_db, make_quote, customer, bank_account):
        quote = make_quote(
            customer, status=QuoteStatus.ACCEPTED, quote_type=TradeType.SELL,
            from_currency="BTC", to_currency="ZAR",
        )
        order = await _materializer(mock_db, bank_account).materialize(quote, bank_account)
        assert order.bank_account_id == bank_account.id
        assert order.crypto_wallet_id is None

    @pytest.mark.asyncio
    async def test_transaction_id_derives_from_quote(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet()
        quote = make_quote(customer, status=QuoteStatus.ACCEPTED)

        order = await _materializer(mock_db, wallet).materialize(quote, wallet)

        assert order.transaction_id.startswith(f"TXN-{quote.id.hex[-8:].upper()}-")

    @pytest.mark.asyncio
    async def test_duplicate_order(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet()
        mock_db.flush = AsyncMock(
            side_effect=IntegrityError("INSERT INTO orders", {}, Exception("uq_orders_quote_id")),
        )
        with pytest.raises(AlreadyAcceptedError):
            await _materializer(mock_db, wallet).materialize(
                make_quote(customer, status=QuoteStatus.ACCEPTED), wallet,
            )

    @pytest.mark.asyncio
    async def test_requires_accepted_quote(self, mock_db, make_quote, customer, make_wallet):
        wallet = make_wallet()
        with pytest.raises(InvalidTransitionError):
            await _materializer(mock_db, wallet).materialize(make_quote(customer), wallet)
        mock_db.add.assert_not_called()
