"""Tests for operator-issued privileged quotes."""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from otcdesk.core.errors import (
    InvalidAmountError,
    InvalidSettingError,
    JustificationRequiredError,
    NotFoundError,
    RateUnavailableError,
    UnauthorizedError,
)
from otcdesk.models.quote import QuoteOrigin, QuoteStatus, TradeType
from otcdesk.services.privileged_quote_service import PrivilegedQuoteService


@pytest.fixture
def fund(make_user):
    return make_user(email="fund@example.com", full_name="Fund Ltd", is_privileged=True)


@pytest.fixture
def rate_service(make_rate_pair):
    svc = MagicMock()
    svc.get_rate = AsyncMock(
        return_value=make_rate_pair("ZAR", "BTC", buy="0.00000095", sell="0.00000090"),
    )
    return svc


@pytest.fixture
def service(mock_db, mock_redis, rate_service, make_config, catalog, event_sink, fund):
    settings_service = MagicMock()
    settings_service.snapshot = AsyncMock(return_value=make_config())
    currency_service = MagicMock()
    currency_service.active_catalog = AsyncMock(return_value=catalog)
    mock_db.get = AsyncMock(return_value=fund)
    return PrivilegedQuoteService(
        mock_db, mock_redis,
        rate_service=rate_service,
        settings_service=settings_service,
        currency_service=currency_service,
        events=event_sink,
    )


class TestIssue:

    @pytest.mark.asyncio
    async def test_special_rate_with_reason(self, service, operator, fund, mock_db, event_sink):
        quote = await service.issue(
            operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("1000000"),
            exchange_rate=Decimal("0.00000097"),
            admin_fee=Decimal("0"),
            special_rate_reason="Quarterly volume agreement",
        )

        assert quote.origin == QuoteOrigin.PRIVILEGED
        assert quote.is_privileged
        assert quote.issued_by == operator.id
        assert quote.user_id == fund.id
        assert quote.status == QuoteStatus.PENDING
        assert quote.exchange_rate == Decimal("0.00000097")
        assert quote.to_amount == Decimal("0.97000000")
        assert quote.special_rate_reason == "Quarterly volume agreement"
        assert quote.expires_at - quote.created_at == timedelta(minutes=120)
        mock_db.add.assert_called_once_with(quote)
        event_sink.emit.assert_called_once()

    @pytest.mark.asyncio
    async def test_deviation_requires_reason(self, service, operator, fund, mock_db):
        with pytest.raises(JustificationRequiredError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("1000000"),
                exchange_rate=Decimal("0.00000097"),
            )
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_reason_counts_as_missing(self, service, operator, fund):
        with pytest.raises(JustificationRequiredError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("1000000"),
                exchange_rate=Decimal("0.00000097"),
                special_rate_reason="   ",
            )

    @pytest.mark.asyncio
    async def test_standard_pricing_needs_no_reason(self, service, operator, fund):
        # 10000 x 0.5% = 50 ZAR admin fee, same rate as the desk's buy rate
        quote = await service.issue(
            operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
            exchange_rate=Decimal("0.00000095"),
            admin_fee=Decimal("50"),
        )
        assert quote.special_rate_reason is None
        assert quote.net_amount == Decimal("0.00950000")

    @pytest.mark.asyncio
    async def test_missing_standard_rate_requires_reason(self, service, operator, fund, rate_service):
        rate_service.get_rate = AsyncMock(side_effect=RateUnavailableError("ZAR", "BTC"))
        with pytest.raises(JustificationRequiredError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000095"),
                admin_fee=Decimal("50"),
            )

    @pytest.mark.asyncio
    async def test_skips_minimum_trade(self, service, operator, fund):
        quote = await service.issue(
            operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("100"),
            exchange_rate=Decimal("0.00000099"),
            special_rate_reason="Test transfer",
        )
        assert quote.from_amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_custom_validity(self, service, operator, fund):
        quote = await service.issue(
            operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
            exchange_rate=Decimal("0.00000099"),
            special_rate_reason="Weekend desk",
            expires_in_minutes=2880,
        )
        assert quote.expires_at - quote.created_at == timedelta(minutes=2880)

    @pytest.mark.asyncio
    async def test_validity_above_a_week(self, service, operator, fund):
        with pytest.raises(InvalidSettingError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000099"),
                special_rate_reason="Too long",
                expires_in_minutes=10081,
            )

    @pytest.mark.asyncio
    async def test_zero_validity_rejected(self, service, operator, fund):
        with pytest.raises(InvalidSettingError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000099"),
                special_rate_reason="Instant",
                expires_in_minutes=0,
            )

    @pytest.mark.asyncio
    async def test_non_positive_rate(self, service, operator, fund):
        with pytest.raises(InvalidAmountError):
            await service.issue(
                operator, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0"),
                special_rate_reason="Free",
            )

    @pytest.mark.asyncio
    async def test_target_must_be_privileged(self, service, operator, customer, mock_db):
        mock_db.get = AsyncMock(return_value=customer)
        with pytest.raises(UnauthorizedError):
            await service.issue(
                operator, customer.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000099"),
                special_rate_reason="Not eligible",
            )

    @pytest.mark.asyncio
    async def test_unknown_target(self, service, operator, mock_db):
        mock_db.get = AsyncMock(return_value=None)
        with pytest.raises(NotFoundError):
            await service.issue(
                operator, uuid.uuid4(), TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000099"),
                special_rate_reason="Ghost",
            )

    @pytest.mark.asyncio
    async def test_customer_cannot_issue(self, service, customer, fund):
        with pytest.raises(UnauthorizedError):
            await service.issue(
                customer, fund.id, TradeType.BUY, "ZAR", "BTC", Decimal("10000"),
                exchange_rate=Decimal("0.00000099"),
                special_rate_reason="Self-service",
            )


class TestSetPrivileged:

    @pytest.mark.asyncio
    async def test_grant(self, service, operator, customer, mock_db):
        mock_db.get = AsyncMock(return_value=customer)

        user = await service.set_privileged(customer.id, True, "Signed OTC agreement", operator)

        assert user.is_privileged is True
        assert user.privileged_notes == "Signed OTC agreement"
        mock_db.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_revoke(self, service, operator, fund):
        user = await service.set_privileged(fund.id, False, None, operator)
        assert user.is_privileged is False

    @pytest.mark.asyncio
    async def test_customer_cannot_toggle(self, service, customer):
        with pytest.raises(UnauthorizedError):
            await service.set_privileged(customer.id, True, None, customer)

    @pytest.mark.asyncio
    async def test_unknown_user(self, service, operator, mock_db):
        mock_db.get = AsyncMock(return_value=None)
        with pytest.raises(NotFoundError):
            await service.set_privileged(uuid.uuid4(), True, None, operator)
