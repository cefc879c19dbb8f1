"""
Rate Provider — derived buy/sell rates per currency pair.

    final_buy_rate  = base_rate x (1 + buy_markup)
    final_sell_rate = base_rate x (1 - sell_markup)

The PostgreSQL row (one per ordered pair) is the source of truth; Redis
holds the same pair as one JSON document under ``rate:{FROM}:{TO}``.
Both are written whole, in a single statement each, so a reader sees
either the previous pair or the new one. The cache is written only
after the rows commit, so Redis never holds a rate the database lost to a
rollback.

``get_rate`` never calls the market-data feed. Only ``refresh_all``
(operators and the beat schedule) and ``set_markups`` write rates.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal, localcontext

from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.config import settings
from otcdesk.core.errors import InvalidSettingError, RateUnavailableError, UnauthorizedError
from otcdesk.models.currency import AssetClass
from otcdesk.models.exchange_rate import ExchangeRate
from otcdesk.models.user import User
from otcdesk.schemas.rate import RatePair, RefreshReport
from otcdesk.services.currency_service import CurrencyService
from otcdesk.services.market_data import FeedUnavailableError, MarketDataFeed, get_market_data_feed
from otcdesk.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

RATE_KEY = "rate:{from_currency}:{to_currency}"
RATE_QUANTUM = Decimal("1e-18")

_RATE_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP)


def rate_key(from_currency: str, to_currency: str) -> str:
    return RATE_KEY.format(
        from_currency=from_currency.upper(), to_currency=to_currency.upper(),
    )


def derive_rate_pair(
    from_currency: str,
    to_currency: str,
    base_rate: Decimal,
    buy_markup: Decimal,
    sell_markup: Decimal,
    last_updated: datetime | None = None,
) -> RatePair:
    """Apply the desk's markups to a base rate. Raises ValueError on bad inputs."""
    if base_rate <= 0:
        raise ValueError(f"Base rate must be positive, got {base_rate}")
    if not (0 <= buy_markup < 1 and 0 <= sell_markup < 1):
        raise ValueError("Markups must be fractions between 0 and 1")

    with localcontext(_RATE_CONTEXT):
        base = base_rate.quantize(RATE_QUANTUM)
        final_buy = (base * (1 + buy_markup)).quantize(RATE_QUANTUM)
        final_sell = (base * (1 - sell_markup)).quantize(RATE_QUANTUM)

    return RatePair(
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        base_rate=base,
        buy_markup=buy_markup,
        sell_markup=sell_markup,
        final_buy_rate=final_buy,
        final_sell_rate=final_sell,
        last_updated=last_updated or datetime.now(timezone.utc),
    )


class RateService:
    """Derived rate reads, refresh and markup overrides."""

    def __init__(
        self,
        db: AsyncSession,
        redis,
        feed: MarketDataFeed | None = None,
        settings_service: SettingsService | None = None,
        currency_service: CurrencyService | None = None,
    ):
        self.db = db
        self.redis = redis
        self._feed = feed
        self._settings_service = settings_service
        self._currency_service = currency_service

    @property
    def feed(self) -> MarketDataFeed:
        if self._feed is None:
            self._feed = get_market_data_feed()
        return self._feed

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

    # --- Reads ---

    async def get_rate(self, from_currency: str, to_currency: str) -> RatePair:
        """
        Most recently stored derived rate for the pair.

        Reads Redis first and falls back to PostgreSQL, re-populating the
        cache. Raises RateUnavailableError if the pair was never priced.
        """
        from_code, to_code = from_currency.upper(), to_currency.upper()
        key = rate_key(from_code, to_code)

        try:
            cached = await self.redis.get(key)
        except RedisError as exc:
            logger.warning("Rate cache read failed for %s: %s", key, exc)
            cached = None

        if cached is not None:
            try:
                return RatePair.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding malformed cached rate %s", key)

        result = await self.db.execute(
            select(ExchangeRate).where(
                ExchangeRate.from_currency == from_code,
                ExchangeRate.to_currency == to_code,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise RateUnavailableError(from_code, to_code)

        pair = row.to_rate_pair()
        await self._cache(pair)
        return pair

    async def list_rates(self) -> list[RatePair]:
        result = await self.db.execute(
            select(ExchangeRate).order_by(ExchangeRate.from_currency, ExchangeRate.to_currency)
        )
        return [row.to_rate_pair() for row in result.scalars().all()]

    # --- Writes ---

    async def _cache(self, pair: RatePair) -> None:
        key = rate_key(pair.from_currency, pair.to_currency)
        try:
            await self.redis.setex(key, settings.RATE_CACHE_TTL_SECONDS, pair.model_dump_json())
        except RedisError as exc:
            logger.warning("Rate cache write failed for %s: %s", key, exc)

    async def _upsert(self, pair: RatePair) -> None:
        """Replace the pair's row in one statement; ``custom_markup`` is preserved."""
        values = {
            "base_rate": pair.base_rate,
            "buy_markup": pair.buy_markup,
            "sell_markup": pair.sell_markup,
            "final_buy_rate": pair.final_buy_rate,
            "final_sell_rate": pair.final_sell_rate,
            "last_updated": pair.last_updated,
        }
        stmt = (
            pg_insert(ExchangeRate)
            .values(
                id=uuid.uuid4(),
                from_currency=pair.from_currency,
                to_currency=pair.to_currency,
                custom_markup=False,
                **values,
            )
            .on_conflict_do_update(constraint="uq_exchange_rates_pair", set_=values)
        )
        await self.db.execute(stmt)

    @staticmethod
    def refresh_pairs(catalog) -> list[tuple[str, str]]:
        """crypto->fiat, fiat->crypto and crypto->crypto for every active currency."""
        crypto = sorted(c.code for c in catalog.values() if c.asset_class == AssetClass.CRYPTO)
        fiat = sorted(c.code for c in catalog.values() if c.asset_class == AssetClass.FIAT)
        pairs = [(c, f) for c in crypto for f in fiat]
        pairs += [(f, c) for f in fiat for c in crypto]
        pairs += [(a, b) for a in crypto for b in crypto if a != b]
        return pairs

    async def refresh_all(self, actor: User | None = None) -> RefreshReport:
        """
        Re-pull base rates for all active pairs and store the derived rates.

        *actor* is None for scheduled refreshes; a user actor must be an
        operator. A pair whose feed call fails keeps its previous rate and
        is listed in ``report.failed``.
        """
        if actor is not None and not actor.is_operator:
            raise UnauthorizedError("Only operators may refresh rates")

        report = RefreshReport(started_at=datetime.now(timezone.utc))
        catalog = await self.currency_service.active_catalog()
        defaults = (await self.settings_service.snapshot()).markups

        result = await self.db.execute(select(ExchangeRate))
        existing = {(r.from_currency, r.to_currency): r for r in result.scalars().all()}
        derived: list[RatePair] = []

        for from_code, to_code in self.refresh_pairs(catalog):
            label = f"{from_code}/{to_code}"
            try:
                base_rate = await self.feed.fetch_base_rate(from_code, to_code)
                row = existing.get((from_code, to_code))
                if row is not None and row.custom_markup:
                    buy, sell = row.buy_markup, row.sell_markup
                else:
                    buy, sell = defaults.buy, defaults.sell
                pair = derive_rate_pair(from_code, to_code, base_rate, buy, sell)
            except (FeedUnavailableError, ValueError) as exc:
                logger.warning("Rate refresh failed for %s: %s", label, exc)
                report.failed[label] = str(exc)
                continue

            await self._upsert(pair)
            derived.append(pair)
            report.refreshed.append(label)

        # Redis only ever mirrors committed rows
        await self.db.commit()
        for pair in derived:
            await self._cache(pair)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Rate refresh finished: %d refreshed, %d failed",
            len(report.refreshed), len(report.failed),
        )
        return report

    async def set_markups(
        self,
        from_currency: str,
        to_currency: str,
        buy_markup: Decimal,
        sell_markup: Decimal,
        operator: User,
    ) -> RatePair:
        """Pin one pair's markups and recompute its final rates from the stored base."""
        if not operator.is_operator:
            raise UnauthorizedError("Only operators may change markups")

        from_code, to_code = from_currency.upper(), to_currency.upper()
        result = await self.db.execute(
            select(ExchangeRate).where(
                ExchangeRate.from_currency == from_code,
                ExchangeRate.to_currency == to_code,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise RateUnavailableError(from_code, to_code)

        try:
            pair = derive_rate_pair(from_code, to_code, row.base_rate, buy_markup, sell_markup)
        except ValueError as exc:
            raise InvalidSettingError(str(exc))

        row.buy_markup = pair.buy_markup
        row.sell_markup = pair.sell_markup
        row.final_buy_rate = pair.final_buy_rate
        row.final_sell_rate = pair.final_sell_rate
        row.last_updated = pair.last_updated
        row.custom_markup = True
        await self.db.commit()
        await self._cache(pair)

        logger.info(
            "Markups for %s set to buy=%s sell=%s by operator %s",
            pair.pair, buy_markup, sell_markup, operator.id,
        )
        return pair
