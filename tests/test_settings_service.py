"""Tests for runtime pricing settings — parsing, overrides over defaults, operator updates."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from otcdesk.config import settings
from otcdesk.core.errors import InvalidSettingError, UnauthorizedError
from otcdesk.models.admin_setting import AdminSetting
from otcdesk.services.settings_service import SettingsService, parse_setting


class TestParseSetting:

    def test_fraction(self):
        assert parse_setting("admin_fee_percentage", "0.0075") == Decimal("0.0075")

    @pytest.mark.parametrize("raw", ["1", "-0.01", "abc", "Infinity"])
    def test_fraction_out_of_range_or_garbage(self, raw):
        with pytest.raises(InvalidSettingError):
            parse_setting("default_buy_markup", raw)

    def test_minutes(self):
        assert parse_setting("quote_expiry_minutes", " 30 ") == 30

    @pytest.mark.parametrize("raw", ["0", "1441", "15.5"])
    def test_minutes_invalid(self, raw):
        with pytest.raises(InvalidSettingError):
            parse_setting("quote_expiry_minutes", raw)

    def test_privileged_validity_allows_a_week(self):
        assert parse_setting("privileged_quote_expiry_minutes", "10080") == 10080

    def test_per_currency_keys(self):
        assert parse_setting("withdrawal_fee_nad", "35") == Decimal("35")
        assert parse_setting("MIN_TRADE_AMOUNT_ZAR", "1000") == Decimal("1000")

    def test_negative_fee(self):
        with pytest.raises(InvalidSettingError):
            parse_setting("withdrawal_fee_zar", "-1")

    def test_unknown_key(self):
        with pytest.raises(InvalidSettingError):
            parse_setting("maker_rebate", "0.001")

    def test_prefix_without_currency(self):
        with pytest.raises(InvalidSettingError):
            parse_setting("withdrawal_fee_", "10")


class TestSnapshot:

    @pytest.mark.asyncio
    async def test_defaults_without_rows(self, mock_db):
        config = await SettingsService(mock_db).snapshot()

        assert config.fees.admin_fee_percentage == settings.ADMIN_FEE_PERCENTAGE
        assert config.policy.validity_minutes == settings.QUOTE_EXPIRY_MINUTES
        assert config.policy.privileged_validity_minutes == settings.PRIVILEGED_QUOTE_EXPIRY_MINUTES
        assert config.fees.withdrawal_fee_for("ZAR") == Decimal("50")
        assert config.policy.min_trade_for("ZAR") == Decimal("500")
        assert config.policy.min_trade_for("BTC") is None

    @pytest.mark.asyncio
    async def test_stored_rows_override_defaults(self, mock_db, result_with):
        rows = [
            AdminSetting(setting_key="admin_fee_percentage", setting_value="0.01"),
            AdminSetting(setting_key="quote_expiry_minutes", setting_value="5"),
            AdminSetting(setting_key="withdrawal_fee_zar", setting_value="75"),
            AdminSetting(setting_key="min_trade_amount_nad", setting_value="200"),
        ]
        mock_db.execute = AsyncMock(return_value=result_with(rows=rows))

        config = await SettingsService(mock_db).snapshot()

        assert config.fees.admin_fee_percentage == Decimal("0.01")
        assert config.policy.validity_minutes == 5
        assert config.fees.withdrawal_fee_for("ZAR") == Decimal("75")
        assert config.fees.withdrawal_fee_for("NAD") == Decimal("50")
        assert config.policy.min_trade_for("NAD") == Decimal("200")
        assert config.fees.updated_at is not None

    @pytest.mark.asyncio
    async def test_corrupt_row_ignored(self, mock_db, result_with):
        rows = [AdminSetting(setting_key="admin_fee_percentage", setting_value="lots")]
        mock_db.execute = AsyncMock(return_value=result_with(rows=rows))

        config = await SettingsService(mock_db).snapshot()
        assert config.fees.admin_fee_percentage == settings.ADMIN_FEE_PERCENTAGE

    @pytest.mark.asyncio
    async def test_effective_settings_flat_view(self, mock_db):
        values = await SettingsService(mock_db).effective_settings()
        assert values["quote_expiry_minutes"] == str(settings.QUOTE_EXPIRY_MINUTES)
        assert values["withdrawal_fee_zar"] == "50"
        assert values["min_trade_amount_zar"] == "500"


class TestUpdateSetting:

    @pytest.mark.asyncio
    async def test_creates_row(self, mock_db, operator):
        row = await SettingsService(mock_db).update_setting(
            "Quote_Expiry_Minutes", "20", operator,
        )

        assert row.setting_key == "quote_expiry_minutes"
        assert row.setting_value == "20"
        assert row.updated_by == operator.id
        mock_db.add.assert_called_once_with(row)
        mock_db.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_updates_existing_row(self, mock_db, operator):
        existing = AdminSetting(setting_key="admin_fee_percentage", setting_value="0.005")
        mock_db.get = AsyncMock(return_value=existing)

        row = await SettingsService(mock_db).update_setting(
            "admin_fee_percentage", "0.0025", operator,
        )

        assert row is existing
        assert existing.setting_value == "0.0025"
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_invalid_value(self, mock_db, operator):
        with pytest.raises(InvalidSettingError):
            await SettingsService(mock_db).update_setting("quote_expiry_minutes", "0", operator)
        mock_db.flush.assert_not_called()

    @pytest.mark.asyncio
    async def test_customer_cannot_update(self, mock_db, customer):
        with pytest.raises(UnauthorizedError):
            await SettingsService(mock_db).update_setting("quote_expiry_minutes", "20", customer)
