"""
Quote Lifecycle Manager — creation, expiry, acceptance and rejection.

    pending ──accept──► accepted        (order materialized in the same transaction)
       ├──reject──────► rejected        (by the owner)
       ├──cancel──────► cancelled       (by an operator)
       └──expires_at──► expired         (detected on every read / action)

Every transition out of ``pending`` is a conditional UPDATE guarded by
``status = 'pending' AND expires_at > now``. Of two concurrent accepts
exactly one matches the row; the other sees rowcount 0 and fails with
AlreadyAccepted (or the matching final-state error).
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import (
    AlreadyAcceptedError,
    AlreadyFinalError,
    BelowMinimumTradeError,
    LimitExceededError,
    NotFoundError,
    QuoteExpiredError,
    UnauthorizedError,
)
from otcdesk.models.currency import Currency
from otcdesk.models.order import Order
from otcdesk.models.quote import Quote, QuoteOrigin, QuoteStatus, TradeType
from otcdesk.models.user import User
from otcdesk.services import fee_calculator
from otcdesk.services.currency_service import CurrencyService
from otcdesk.services.events import EventSink, LifecycleEvent, get_event_sink, order_payload, quote_payload
from otcdesk.services.fee_calculator import PricingResult
from otcdesk.services.limits_service import TradingLimitsLedger
from otcdesk.services.order_materializer import OrderMaterializer
from otcdesk.services.rate_service import RateService
from otcdesk.services.settings_service import RuntimeConfig, SettingsService

logger = logging.getLogger(__name__)


class QuoteService:
    """Standard quote generation and the lifecycle shared by all quotes."""

    def __init__(
        self,
        db: AsyncSession,
        redis,
        *,
        rate_service: RateService | None = None,
        settings_service: SettingsService | None = None,
        currency_service: CurrencyService | None = None,
        limits: TradingLimitsLedger | None = None,
        events: EventSink | None = None,
        materializer: OrderMaterializer | None = None,
    ):
        self.db = db
        self.redis = redis
        self._rate_service = rate_service
        self._settings_service = settings_service
        self._currency_service = currency_service
        self._limits = limits
        self._events = events
        self._materializer = materializer

    # --- Collaborators (built lazily on the same session) ---

    @property
    def settings_service(self) -> SettingsService:
        if self._settings_service is None:
            self._settings_service = SettingsService(self.db)
        return self._settings_service

    @property
    def currency_service(self) -> CurrencyService:
        if self._currency_service is None:
            self._currency_service = CurrencyService(self.db)
        return self._currency_service

    @property
    def rate_service(self) -> RateService:
        if self._rate_service is None:
            self._rate_service = RateService(
                self.db, self.redis,
                settings_service=self.settings_service,
                currency_service=self.currency_service,
            )
        return self._rate_service

    @property
    def limits(self) -> TradingLimitsLedger:
        if self._limits is None:
            self._limits = TradingLimitsLedger(self.db)
        return self._limits

    @property
    def events(self) -> EventSink:
        if self._events is None:
            self._events = get_event_sink()
        return self._events

    @property
    def materializer(self) -> OrderMaterializer:
        if self._materializer is None:
            self._materializer = OrderMaterializer(self.db)
        return self._materializer

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    async def _price_standard(
        self,
        trade_type: TradeType,
        from_currency: str,
        to_currency: str,
        amount: Decimal,
    ) -> tuple[PricingResult, RuntimeConfig, dict[str, Currency]]:
        catalog = await self.currency_service.active_catalog()
        # Input errors take precedence over a missing rate
        fee_calculator.validate_trade(trade_type, from_currency, to_currency, amount, catalog)
        rate_pair = await self.rate_service.get_rate(from_currency, to_currency)
        config = await self.settings_service.snapshot()
        result = fee_calculator.price(
            trade_type, from_currency, to_currency, amount, rate_pair, config.fees, catalog,
        )
        return result, config, catalog

    async def preview(
        self,
        trade_type: TradeType,
        from_currency: str,
        to_currency: str,
        amount: Decimal,
    ) -> PricingResult:
        """Price a trade without creating a quote."""
        result, _, _ = await self._price_standard(trade_type, from_currency, to_currency, amount)
        return result

    async def fiat_equivalent(
        self, result: PricingResult, config: RuntimeConfig,
    ) -> tuple[str, Decimal]:
        """
        The fiat leg of a trade: the source amount for a buy, the gross
        payout for a sell, and the source valued in the reference fiat at
        the base rate for a swap.
        """
        if result.trade_type == TradeType.BUY:
            return result.from_currency, result.from_amount
        if result.trade_type == TradeType.SELL:
            return result.to_currency, result.to_amount

        reference = config.policy.reference_fiat
        pair = await self.rate_service.get_rate(result.from_currency, reference)
        return reference, result.from_amount * pair.base_rate

    async def _check_minimum(self, result: PricingResult, config: RuntimeConfig) -> None:
        currency, amount = await self.fiat_equivalent(result, config)
        floor = config.policy.min_trade_for(currency)
        if floor is not None and amount < floor:
            raise BelowMinimumTradeError(f"Minimum trade amount is {floor} {currency}")

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    async def generate(
        self,
        user: User,
        trade_type: TradeType,
        from_currency: str,
        to_currency: str,
        amount: Decimal,
    ) -> Quote:
        """
        Create a pending standard quote locked at the current derived rate.

        Raises InvalidAmount / UnknownCurrency / SameCurrency / InvalidPair
        from the fee calculator, RateUnavailable, BelowMinimumTrade and
        LimitExceeded.
        """
        result, config, _ = await self._price_standard(
            trade_type, from_currency, to_currency, amount,
        )
        await self._check_minimum(result, config)

        if not await self.limits.check_and_reserve(user.id, result.from_currency, amount):
            raise LimitExceededError(
                f"This trade exceeds your {result.from_currency} trading limit"
            )

        now = datetime.now(timezone.utc)
        quote = Quote(
            user_id=user.id,
            origin=QuoteOrigin.STANDARD,
            quote_type=trade_type,
            from_currency=result.from_currency,
            to_currency=result.to_currency,
            from_amount=amount,
            status=QuoteStatus.PENDING,
            expires_at=now + timedelta(minutes=config.policy.validity_minutes),
            created_at=now,
            updated_at=now,
            **result.priced_fields(),
        )
        self.db.add(quote)
        await self.db.flush()

        logger.info(
            "Quote %s created for user %s: %s %s %s -> %s at %s",
            quote.id, user.id, trade_type.value, amount,
            quote.from_currency, quote.to_currency, quote.exchange_rate,
        )
        self.events.emit(LifecycleEvent.QUOTE_CREATED, quote_payload(quote, user.phone))
        return quote

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load(self, quote_id: uuid.UUID) -> Quote:
        quote = await self.db.get(Quote, quote_id)
        if quote is None:
            raise NotFoundError("Quote not found")
        return quote

    async def get_quote(self, quote_id: uuid.UUID, actor: User) -> Quote:
        quote = await self._load(quote_id)
        if quote.user_id != actor.id and not actor.is_operator:
            raise UnauthorizedError("You do not have access to this quote")
        return quote

    async def list_active(self, user_id: uuid.UUID) -> list[Quote]:
        """Pending quotes that are still inside their validity window."""
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(Quote)
            .where(
                Quote.user_id == user_id,
                Quote.status == QuoteStatus.PENDING,
                Quote.expires_at > now,
            )
            .order_by(Quote.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_quotes(
        self,
        status: QuoteStatus | None = None,
        user_id: uuid.UUID | None = None,
        origin: QuoteOrigin | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Quote], int]:
        """Operator view; *status* filters on the effective status."""
        now = datetime.now(timezone.utc)
        filters = []
        if user_id is not None:
            filters.append(Quote.user_id == user_id)
        if origin is not None:
            filters.append(Quote.origin == origin)
        if status == QuoteStatus.PENDING:
            filters.append(and_(Quote.status == QuoteStatus.PENDING, Quote.expires_at > now))
        elif status == QuoteStatus.EXPIRED:
            filters.append(or_(
                Quote.status == QuoteStatus.EXPIRED,
                and_(Quote.status == QuoteStatus.PENDING, Quote.expires_at <= now),
            ))
        elif status is not None:
            filters.append(Quote.status == status)

        total = (
            await self.db.execute(select(func.count()).select_from(Quote).where(*filters))
        ).scalar_one()
        result = await self.db.execute(
            select(Quote)
            .where(*filters)
            .order_by(Quote.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    def ensure_actionable(quote: Quote, now: datetime | None = None) -> None:
        """Raise the matching final-state error unless *quote* is pending and unexpired."""
        status = quote.effective_status(now)
        if status == QuoteStatus.PENDING:
            return
        if status == QuoteStatus.EXPIRED:
            raise QuoteExpiredError()
        if status == QuoteStatus.ACCEPTED:
            raise AlreadyAcceptedError()
        raise AlreadyFinalError()

    async def _close(self, quote: Quote, new_status: QuoteStatus, now: datetime) -> None:
        """Conditionally move *quote* out of pending; raise if another writer won."""
        values = {"status": new_status, "updated_at": now}
        if new_status == QuoteStatus.ACCEPTED:
            values["accepted_at"] = now
        else:
            values["closed_at"] = now

        result = await self.db.execute(
            update(Quote)
            .where(
                Quote.id == quote.id,
                Quote.status == QuoteStatus.PENDING,
                Quote.expires_at > now,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Quote %s changed concurrently; %s refused", quote.id, new_status.value,
            )
            await self.db.refresh(quote)
            self.ensure_actionable(quote, now)
            raise AlreadyAcceptedError()

        quote.transition_to(new_status, now)

    async def accept(
        self, quote_id: uuid.UUID, actor: User, destination_id: uuid.UUID | None,
    ) -> Order:
        """
        Accept a quote and materialize its order, at most once.

        Only the quote's owner may accept. Expired quotes are refused even
        when their stored status is still pending.
        """
        quote = await self._load(quote_id)
        if quote.user_id != actor.id:
            raise UnauthorizedError("Only the quote's owner may accept it")

        now = datetime.now(timezone.utc)
        self.ensure_actionable(quote, now)
        destination = await self.materializer.resolve_destination(quote, destination_id)

        await self._close(quote, QuoteStatus.ACCEPTED, now)
        order = await self.materializer.materialize(quote, destination)

        logger.info("Quote %s accepted by user %s", quote.id, actor.id)
        self.events.emit(LifecycleEvent.QUOTE_ACCEPTED, quote_payload(quote, actor.phone))
        self.events.emit(LifecycleEvent.ORDER_CREATED, order_payload(order, actor.phone))
        return order

    async def reject(self, quote_id: uuid.UUID, actor: User) -> Quote:
        """
        Owner rejection (-> rejected) or operator cancellation (-> cancelled).

        Any attempt on a quote that is no longer pending raises an
        AlreadyFinal-family error.
        """
        quote = await self._load(quote_id)
        if quote.user_id == actor.id:
            new_status, event = QuoteStatus.REJECTED, LifecycleEvent.QUOTE_REJECTED
        elif actor.is_operator:
            new_status, event = QuoteStatus.CANCELLED, LifecycleEvent.QUOTE_CANCELLED
        else:
            raise UnauthorizedError("Only the quote's owner or an operator may close it")

        now = datetime.now(timezone.utc)
        self.ensure_actionable(quote, now)
        await self._close(quote, new_status, now)

        logger.info("Quote %s %s by %s", quote.id, new_status.value, actor.id)
        owner = actor if quote.user_id == actor.id else await self.db.get(User, quote.user_id)
        self.events.emit(event, quote_payload(quote, owner.phone if owner else None))
        return quote

    async def expire_overdue(self, now: datetime | None = None) -> int:
        """Mark every overdue pending quote expired. Returns the number changed."""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            update(Quote)
            .where(Quote.status == QuoteStatus.PENDING, Quote.expires_at <= now)
            .values(status=QuoteStatus.EXPIRED, closed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Expired %d overdue quotes", result.rowcount)
        return result.rowcount
