"""
Privileged Quote Authority — operator-issued quotes at a manual rate.

A privileged quote shares the ``quotes`` table and lifecycle with standard
quotes; only creation differs:
- issued by an operator on behalf of a user flagged ``is_privileged``
- rate and fee amounts come from the operator, not the Rate Provider
- a special-rate reason is mandatory whenever the result deviates from
  what standard pricing would produce (or no standard rate exists)
- no trading-limit or minimum-trade checks

Accept and reject go through ``QuoteService`` like any other quote, so
only the target user can act on it.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import (
    InvalidSettingError,
    JustificationRequiredError,
    NotFoundError,
    RateUnavailableError,
    UnauthorizedError,
)
from otcdesk.models.quote import Quote, QuoteOrigin, QuoteStatus, TradeType
from otcdesk.models.user import User
from otcdesk.services import fee_calculator
from otcdesk.services.currency_service import CurrencyService
from otcdesk.services.events import EventSink, LifecycleEvent, get_event_sink, quote_payload
from otcdesk.services.fee_calculator import PricingResult
from otcdesk.services.rate_service import RateService
from otcdesk.services.settings_service import RuntimeConfig, SettingsService

logger = logging.getLogger(__name__)

MAX_PRIVILEGED_VALIDITY_MINUTES = 10080  # one week


class PrivilegedQuoteService:

    def __init__(
        self,
        db: AsyncSession,
        redis,
        *,
        rate_service: RateService | None = None,
        settings_service: SettingsService | None = None,
        currency_service: CurrencyService | None = None,
        events: EventSink | None = None,
    ):
        self.db = db
        self.redis = redis
        self.settings_service = settings_service or SettingsService(db)
        self.currency_service = currency_service or CurrencyService(db)
        self.rate_service = rate_service or RateService(
            db, redis,
            settings_service=self.settings_service,
            currency_service=self.currency_service,
        )
        self.events = events or get_event_sink()

    async def _deviates_from_standard(
        self, result: PricingResult, config: RuntimeConfig, catalog,
    ) -> bool:
        try:
            rate_pair = await self.rate_service.get_rate(result.from_currency, result.to_currency)
        except RateUnavailableError:
            return True
        standard = fee_calculator.price(
            result.trade_type, result.from_currency, result.to_currency,
            result.from_amount, rate_pair, config.fees, catalog,
        )
        return not fee_calculator.same_pricing(result, standard)

    async def issue(
        self,
        operator: User,
        target_user_id: uuid.UUID,
        trade_type: TradeType,
        from_currency: str,
        to_currency: str,
        amount: Decimal,
        exchange_rate: Decimal,
        admin_fee: Decimal = Decimal("0"),
        withdrawal_fee: Decimal = Decimal("0"),
        special_rate_reason: str | None = None,
        admin_notes: str | None = None,
        expires_in_minutes: int | None = None,
    ) -> Quote:
        """Issue a pending privileged quote to *target_user_id*."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may issue privileged quotes")

        target = await self.db.get(User, target_user_id)
        if target is None:
            raise NotFoundError("User not found")
        if not target.is_privileged:
            raise UnauthorizedError("User is not eligible for privileged quotes")

        catalog = await self.currency_service.active_catalog()
        result = fee_calculator.price_override(
            trade_type, from_currency, to_currency, amount,
            exchange_rate, admin_fee, withdrawal_fee, catalog,
        )
        config = await self.settings_service.snapshot()

        reason = (special_rate_reason or "").strip() or None
        if reason is None and await self._deviates_from_standard(result, config, catalog):
            raise JustificationRequiredError()

        validity = expires_in_minutes
        if validity is None:
            validity = config.policy.privileged_validity_minutes
        if not 1 <= validity <= MAX_PRIVILEGED_VALIDITY_MINUTES:
            raise InvalidSettingError(
                f"Validity must be between 1 and {MAX_PRIVILEGED_VALIDITY_MINUTES} minutes"
            )

        now = datetime.now(timezone.utc)
        quote = Quote(
            user_id=target.id,
            origin=QuoteOrigin.PRIVILEGED,
            issued_by=operator.id,
            quote_type=trade_type,
            from_currency=result.from_currency,
            to_currency=result.to_currency,
            from_amount=amount,
            status=QuoteStatus.PENDING,
            expires_at=now + timedelta(minutes=validity),
            special_rate_reason=reason,
            admin_notes=admin_notes,
            created_at=now,
            updated_at=now,
            **result.priced_fields(),
        )
        self.db.add(quote)
        await self.db.flush()

        logger.info(
            "Privileged quote %s issued by operator %s for user %s at rate %s",
            quote.id, operator.id, target.id, quote.exchange_rate,
        )
        self.events.emit(LifecycleEvent.QUOTE_CREATED, quote_payload(quote, target.phone))
        return quote

    async def set_privileged(
        self, user_id: uuid.UUID, flag: bool, notes: str | None, operator: User,
    ) -> User:
        """Grant or revoke privileged-quote eligibility. Operator only."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may change privileged status")

        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        user.is_privileged = flag
        user.privileged_notes = notes
        user.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(
            "User %s privileged=%s set by operator %s", user.id, flag, operator.id,
        )
        return user
