"""
Currency catalog — reference data read by every pricing step.

Only operators write to the catalog; the trading flow reads the active
subset once per operation.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import InvalidSettingError, UnauthorizedError
from otcdesk.models.currency import AssetClass, Currency
from otcdesk.models.user import User

logger = logging.getLogger(__name__)


class CurrencyService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_currencies(self, include_inactive: bool = False) -> list[Currency]:
        stmt = select(Currency).order_by(Currency.asset_class, Currency.code)
        if not include_inactive:
            stmt = stmt.where(Currency.is_active.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def active_catalog(self) -> dict[str, Currency]:
        """Active currencies keyed by code."""
        return {c.code: c for c in await self.list_currencies()}

    async def upsert_currency(
        self,
        code: str,
        *,
        name: str,
        asset_class: AssetClass,
        decimals: int,
        symbol: str | None = None,
        is_active: bool = True,
        operator: User,
    ) -> Currency:
        """Create or update a catalog entry. Operator only."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may edit the currency catalog")
        if not 0 <= decimals <= 18:
            raise InvalidSettingError("decimals must be between 0 and 18")

        code = code.strip().upper()
        currency = await self.db.get(Currency, code)
        if currency is None:
            currency = Currency(
                code=code,
                name=name,
                symbol=symbol,
                asset_class=asset_class,
                decimals=decimals,
                is_active=is_active,
            )
            self.db.add(currency)
            logger.info("Currency %s added by operator %s", code, operator.id)
        else:
            if currency.asset_class != asset_class:
                raise InvalidSettingError(
                    f"Cannot change asset class of {code} from "
                    f"{currency.asset_class.value} to {asset_class.value}"
                )
            currency.name = name
            currency.symbol = symbol
            currency.decimals = decimals
            currency.is_active = is_active
            logger.info(
                "Currency %s updated by operator %s (active=%s)",
                code, operator.id, is_active,
            )

        await self.db.flush()
        return currency
