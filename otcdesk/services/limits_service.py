"""
Trading limits ledger — per-user, per-currency daily and monthly caps.

``check_and_reserve`` is consulted before a standard quote is created.
Usage counters reset lazily at UTC day / month boundaries, and the
reservation itself is one conditional UPDATE, so two concurrent requests
can never push usage past a limit.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import InvalidSettingError, UnauthorizedError
from otcdesk.models.trading_limit import TradingLimit
from otcdesk.models.user import User

logger = logging.getLogger(__name__)


def period_starts(now: datetime) -> tuple[datetime, datetime]:
    """Start of the current UTC day and month."""
    day_start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start, day_start.replace(day=1)


class TradingLimitsLedger:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_limit(self, user_id: uuid.UUID, currency: str) -> TradingLimit | None:
        result = await self.db.execute(
            select(TradingLimit).where(
                TradingLimit.user_id == user_id,
                TradingLimit.currency == currency.upper(),
            )
        )
        return result.scalar_one_or_none()

    async def check_and_reserve(
        self, user_id: uuid.UUID, currency: str, amount: Decimal,
    ) -> bool:
        """
        Reserve *amount* against the user's limits for *currency*.

        Returns True when allowed (or when no active limit exists) and
        False when either the daily or the monthly cap would be exceeded.
        """
        limit = await self.get_limit(user_id, currency)
        if limit is None or not limit.is_active:
            return True

        now = datetime.now(timezone.utc)
        day_start, month_start = period_starts(now)

        await self.db.execute(
            update(TradingLimit)
            .where(TradingLimit.id == limit.id, TradingLimit.last_reset_daily < day_start)
            .values(daily_used=Decimal("0"), last_reset_daily=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(TradingLimit)
            .where(TradingLimit.id == limit.id, TradingLimit.last_reset_monthly < month_start)
            .values(monthly_used=Decimal("0"), last_reset_monthly=now)
            .execution_options(synchronize_session=False)
        )

        result = await self.db.execute(
            update(TradingLimit)
            .where(
                TradingLimit.id == limit.id,
                TradingLimit.daily_used + amount <= TradingLimit.daily_limit,
                TradingLimit.monthly_used + amount <= TradingLimit.monthly_limit,
            )
            .values(
                daily_used=TradingLimit.daily_used + amount,
                monthly_used=TradingLimit.monthly_used + amount,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Trading limit refused %s %s for user %s", amount, currency, user_id,
            )
            return False
        return True

    async def set_limit(
        self,
        user_id: uuid.UUID,
        currency: str,
        daily_limit: Decimal,
        monthly_limit: Decimal,
        operator: User,
        is_active: bool = True,
    ) -> TradingLimit:
        """Create or update a user's limits for one currency. Operator only."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may set trading limits")
        if daily_limit < 0 or monthly_limit < 0:
            raise InvalidSettingError("Limits must not be negative")
        if daily_limit > monthly_limit:
            raise InvalidSettingError("Daily limit cannot exceed the monthly limit")

        limit = await self.get_limit(user_id, currency)
        if limit is None:
            limit = TradingLimit(
                user_id=user_id,
                currency=currency.upper(),
                daily_limit=daily_limit,
                monthly_limit=monthly_limit,
                is_active=is_active,
            )
            self.db.add(limit)
        else:
            limit.daily_limit = daily_limit
            limit.monthly_limit = monthly_limit
            limit.is_active = is_active
            limit.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(
            "Limits for user %s %s set to daily=%s monthly=%s by operator %s",
            user_id, currency.upper(), daily_limit, monthly_limit, operator.id,
        )
        return limit
