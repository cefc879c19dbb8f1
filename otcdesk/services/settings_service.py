"""
Runtime pricing configuration backed by the ``admin_settings`` table.

Environment settings provide the defaults; any row in ``admin_settings``
overrides its key. Operators change values through ``update_setting`` and
the next quote picks them up, with no redeploy.

Keys:
    admin_fee_percentage              fraction, 0 <= x < 1
    default_buy_markup                fraction, 0 <= x < 1
    default_sell_markup               fraction, 0 <= x < 1
    quote_expiry_minutes              integer, 1..1440
    privileged_quote_expiry_minutes   integer, 1..10080
    withdrawal_fee_<code>             amount >= 0, per fiat currency
    min_trade_amount_<code>           amount >= 0, per fiat currency
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.config import settings
from otcdesk.core.errors import InvalidSettingError, UnauthorizedError
from otcdesk.models.admin_setting import AdminSetting
from otcdesk.models.user import User
from otcdesk.services.fee_calculator import FeeConfiguration

logger = logging.getLogger(__name__)

WITHDRAWAL_FEE_PREFIX = "withdrawal_fee_"
MIN_TRADE_PREFIX = "min_trade_amount_"

FRACTION_KEYS = {"admin_fee_percentage", "default_buy_markup", "default_sell_markup"}
MINUTE_KEYS = {
    "quote_expiry_minutes": 1440,
    "privileged_quote_expiry_minutes": 10080,
}


# ---------------------------------------------------------------------------
# Snapshot value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuotePolicy:
    validity_minutes: int
    privileged_validity_minutes: int
    min_trade_amounts: Mapping[str, Decimal] = field(default_factory=dict)
    reference_fiat: str = "ZAR"

    def min_trade_for(self, currency: str) -> Decimal | None:
        return self.min_trade_amounts.get(currency.upper())


@dataclass(frozen=True)
class MarkupDefaults:
    buy: Decimal
    sell: Decimal


@dataclass(frozen=True)
class RuntimeConfig:
    """Everything pricing needs, read once per operation."""
    fees: FeeConfiguration
    policy: QuotePolicy
    markups: MarkupDefaults


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_decimal(key: str, raw: str) -> Decimal:
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise InvalidSettingError(f"{key} must be a number, got {raw!r}")
    if not value.is_finite():
        raise InvalidSettingError(f"{key} must be a finite number")
    return value


def parse_setting(key: str, raw: str) -> Decimal | int:
    """
    Validate and convert a raw setting value.

    Raises InvalidSettingError for unknown keys and out-of-range values.
    """
    key = key.strip().lower()

    if key in FRACTION_KEYS:
        value = _parse_decimal(key, raw)
        if not Decimal("0") <= value < Decimal("1"):
            raise InvalidSettingError(f"{key} must be a fraction between 0 and 1")
        return value

    if key in MINUTE_KEYS:
        try:
            minutes = int(str(raw).strip())
        except ValueError:
            raise InvalidSettingError(f"{key} must be a whole number of minutes")
        if not 1 <= minutes <= MINUTE_KEYS[key]:
            raise InvalidSettingError(f"{key} must be between 1 and {MINUTE_KEYS[key]}")
        return minutes

    for prefix in (WITHDRAWAL_FEE_PREFIX, MIN_TRADE_PREFIX):
        if key.startswith(prefix) and len(key) > len(prefix):
            value = _parse_decimal(key, raw)
            if value < 0:
                raise InvalidSettingError(f"{key} must not be negative")
            return value

    raise InvalidSettingError(f"Unknown setting: {key}")


# ---------------------------------------------------------------------------
# SettingsService
# ---------------------------------------------------------------------------


class SettingsService:
    """Reads and updates runtime pricing configuration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_rows(self) -> list[AdminSetting]:
        result = await self.db.execute(select(AdminSetting))
        return list(result.scalars().all())

    def _overrides(self, rows: list[AdminSetting]) -> dict[str, Decimal | int]:
        parsed: dict[str, Decimal | int] = {}
        for row in rows:
            try:
                parsed[row.setting_key.lower()] = parse_setting(row.setting_key, row.setting_value)
            except InvalidSettingError as exc:
                logger.warning("Ignoring stored setting %s: %s", row.setting_key, exc.message)
        return parsed

    async def snapshot(self) -> RuntimeConfig:
        """Effective configuration: environment defaults overlaid with stored rows."""
        rows = await self._load_rows()
        overrides = self._overrides(rows)

        withdrawal_fees = {code.upper(): Decimal(v) for code, v in settings.WITHDRAWAL_FEES.items()}
        min_trades = {code.upper(): Decimal(v) for code, v in settings.MIN_TRADE_AMOUNTS.items()}
        for key, value in overrides.items():
            if key.startswith(WITHDRAWAL_FEE_PREFIX):
                withdrawal_fees[key[len(WITHDRAWAL_FEE_PREFIX):].upper()] = value
            elif key.startswith(MIN_TRADE_PREFIX):
                min_trades[key[len(MIN_TRADE_PREFIX):].upper()] = value

        updated_at = max((row.updated_at for row in rows if row.updated_at), default=None)

        return RuntimeConfig(
            fees=FeeConfiguration(
                admin_fee_percentage=overrides.get(
                    "admin_fee_percentage", settings.ADMIN_FEE_PERCENTAGE,
                ),
                withdrawal_fees=withdrawal_fees,
                updated_at=updated_at,
            ),
            policy=QuotePolicy(
                validity_minutes=overrides.get(
                    "quote_expiry_minutes", settings.QUOTE_EXPIRY_MINUTES,
                ),
                privileged_validity_minutes=overrides.get(
                    "privileged_quote_expiry_minutes", settings.PRIVILEGED_QUOTE_EXPIRY_MINUTES,
                ),
                min_trade_amounts=min_trades,
                reference_fiat=settings.REFERENCE_FIAT.upper(),
            ),
            markups=MarkupDefaults(
                buy=overrides.get("default_buy_markup", settings.DEFAULT_BUY_MARKUP),
                sell=overrides.get("default_sell_markup", settings.DEFAULT_SELL_MARKUP),
            ),
        )

    async def effective_settings(self) -> dict[str, str]:
        """Flat key -> value view of the effective configuration."""
        config = await self.snapshot()
        values = {
            "admin_fee_percentage": str(config.fees.admin_fee_percentage),
            "default_buy_markup": str(config.markups.buy),
            "default_sell_markup": str(config.markups.sell),
            "quote_expiry_minutes": str(config.policy.validity_minutes),
            "privileged_quote_expiry_minutes": str(config.policy.privileged_validity_minutes),
        }
        for code, fee in config.fees.withdrawal_fees.items():
            values[f"{WITHDRAWAL_FEE_PREFIX}{code.lower()}"] = str(fee)
        for code, floor in config.policy.min_trade_amounts.items():
            values[f"{MIN_TRADE_PREFIX}{code.lower()}"] = str(floor)
        return values

    async def update_setting(self, key: str, value: str, operator: User) -> AdminSetting:
        """Validate and store one setting. Operator only."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may change settings")

        key = key.strip().lower()
        parsed = parse_setting(key, value)

        row = await self.db.get(AdminSetting, key)
        now = datetime.now(timezone.utc)
        if row is None:
            row = AdminSetting(setting_key=key, setting_value=str(parsed), updated_by=operator.id)
            self.db.add(row)
        else:
            row.setting_value = str(parsed)
            row.updated_by = operator.id
            row.updated_at = now
        await self.db.flush()

        logger.info("Setting %s updated to %s by operator %s", key, parsed, operator.id)
        return row
