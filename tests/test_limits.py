"""Tests for the trading limits ledger — lazy period resets and conditional reservation."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from otcdesk.core.errors import InvalidSettingError, UnauthorizedError
from otcdesk.models.trading_limit import TradingLimit
from otcdesk.services.limits_service import TradingLimitsLedger, period_starts


def _limit(user_id, **overrides) -> TradingLimit:
    defaults = dict(
        user_id=user_id,
        currency="ZAR",
        daily_limit=Decimal("1000"),
        monthly_limit=Decimal("5000"),
    )
    defaults.update(overrides)
    return TradingLimit(**defaults)


def test_period_starts():
    now = datetime(2026, 3, 17, 14, 22, 5, tzinfo=timezone.utc)
    day, month = period_starts(now)
    assert day == datetime(2026, 3, 17, tzinfo=timezone.utc)
    assert month == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_remaining_never_negative():
    limit = _limit(uuid.uuid4(), daily_used=Decimal("1200"), monthly_used=Decimal("1200"))
    assert limit.remaining_daily() == Decimal("0")
    assert limit.remaining_monthly() == Decimal("3800")


class TestCheckAndReserve:

    @pytest.mark.asyncio
    async def test_no_limit_row_allows(self, mock_db):
        allowed = await TradingLimitsLedger(mock_db).check_and_reserve(
            uuid.uuid4(), "ZAR", Decimal("1000000"),
        )
        assert allowed is True
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_inactive_limit_allows(self, mock_db, result_with):
        user_id = uuid.uuid4()
        mock_db.execute = AsyncMock(
            return_value=result_with(scalar=_limit(user_id, is_active=False)),
        )
        assert await TradingLimitsLedger(mock_db).check_and_reserve(
            user_id, "ZAR", Decimal("999999"),
        )

    @pytest.mark.asyncio
    async def test_reservation_within_limits(self, mock_db, result_with):
        user_id = uuid.uuid4()
        mock_db.execute = AsyncMock(side_effect=[
            result_with(scalar=_limit(user_id)),
            result_with(rowcount=0),  # daily reset not due
            result_with(rowcount=0),  # monthly reset not due
            result_with(rowcount=1),  # increment applied
        ])

        allowed = await TradingLimitsLedger(mock_db).check_and_reserve(
            user_id, "zar", Decimal("600"),
        )

        assert allowed is True
        assert mock_db.execute.await_count == 4

    @pytest.mark.asyncio
    async def test_refused_when_update_matches_nothing(self, mock_db, result_with):
        user_id = uuid.uuid4()
        mock_db.execute = AsyncMock(side_effect=[
            result_with(scalar=_limit(user_id, daily_used=Decimal("600"))),
            result_with(rowcount=0),
            result_with(rowcount=0),
            result_with(rowcount=0),
        ])

        allowed = await TradingLimitsLedger(mock_db).check_and_reserve(
            user_id, "ZAR", Decimal("600"),
        )
        assert allowed is False

    @pytest.mark.asyncio
    async def test_increment_is_conditional_on_both_caps(self, mock_db, result_with):
        user_id = uuid.uuid4()
        mock_db.execute = AsyncMock(side_effect=[
            result_with(scalar=_limit(user_id)),
            result_with(rowcount=0),
            result_with(rowcount=0),
            result_with(rowcount=1),
        ])

        await TradingLimitsLedger(mock_db).check_and_reserve(user_id, "ZAR", Decimal("10"))

        increment = mock_db.execute.await_args_list[3].args[0]
        sql = str(increment.compile())
        assert "daily_used" in sql and "daily_limit" in sql
        assert "monthly_used" in sql and "monthly_limit" in sql


class TestSetLimit:

    @pytest.mark.asyncio
    async def test_creates_limit(self, mock_db, operator):
        user_id = uuid.uuid4()
        limit = await TradingLimitsLedger(mock_db).set_limit(
            user_id, "zar", Decimal("1000"), Decimal("5000"), operator,
        )
        assert limit.currency == "ZAR"
        assert limit.daily_used == Decimal("0")
        mock_db.add.assert_called_once_with(limit)

    @pytest.mark.asyncio
    async def test_updates_existing(self, mock_db, operator, result_with):
        user_id = uuid.uuid4()
        existing = _limit(user_id)
        mock_db.execute = AsyncMock(return_value=result_with(scalar=existing))

        limit = await TradingLimitsLedger(mock_db).set_limit(
            user_id, "ZAR", Decimal("2000"), Decimal("8000"), operator, is_active=False,
        )

        assert limit is existing
        assert existing.daily_limit == Decimal("2000")
        assert existing.is_active is False
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_daily_above_monthly_rejected(self, mock_db, operator):
        with pytest.raises(InvalidSettingError):
            await TradingLimitsLedger(mock_db).set_limit(
                uuid.uuid4(), "ZAR", Decimal("9000"), Decimal("5000"), operator,
            )

    @pytest.mark.asyncio
    async def test_customer_cannot_set(self, mock_db, customer):
        with pytest.raises(UnauthorizedError):
            await TradingLimitsLedger(mock_db).set_limit(
                customer.id, "ZAR", Decimal("1"), Decimal("1"), customer,
            )
