"""
Market data feed — raw base rates for currency pairs.

Every feed prices assets in USD and derives a pair's base rate as a cross
rate: ``base(FROM/TO) = usd_value(FROM) / usd_value(TO)``.

- MockMarketDataFeed: deterministic USD values for dev/testing
- CoinGeckoMarketDataFeed: CoinGecko simple-price for crypto, open.er-api
  USD rates for fiat, short in-process cache of the USD values
"""

import logging
import time
from decimal import Decimal
from typing import Protocol

import httpx

from otcdesk.config import settings

logger = logging.getLogger(__name__)

# CoinGecko asset ids
COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "USDC": "usd-coin",
    "LTC": "litecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "SOL": "solana",
}

# Mock USD value of one unit (deterministic for testing)
MOCK_USD_VALUES = {
    "BTC": Decimal("65000"),
    "ETH": Decimal("3200"),
    "USDT": Decimal("1"),
    "USDC": Decimal("1"),
    "LTC": Decimal("85"),
    "SOL": Decimal("150"),
    "USD": Decimal("1"),
    "ZAR": Decimal("1") / Decimal("18.50"),
    "NAD": Decimal("1") / Decimal("18.50"),
}


class FeedUnavailableError(Exception):
    """Raised when the external market-data source cannot supply a rate."""
    pass


# ---------------------------------------------------------------------------
# Feed protocol
# ---------------------------------------------------------------------------


class MarketDataFeed(Protocol):
    async def fetch_base_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Units of *to_currency* per one unit of *from_currency*."""
        ...


def cross_rate(from_usd: Decimal, to_usd: Decimal) -> Decimal:
    if from_usd <= 0 or to_usd <= 0:
        raise FeedUnavailableError("Non-positive USD value from market data")
    return from_usd / to_usd


class MockMarketDataFeed:
    """Deterministic rates for dev/testing."""

    def __init__(self, usd_values: dict[str, Decimal] | None = None):
        self.usd_values = dict(usd_values or MOCK_USD_VALUES)

    async def fetch_base_rate(self, from_currency: str, to_currency: str) -> Decimal:
        try:
            from_usd = self.usd_values[from_currency.upper()]
            to_usd = self.usd_values[to_currency.upper()]
        except KeyError as exc:
            raise FeedUnavailableError(f"No mock price for {exc.args[0]}") from exc
        return cross_rate(from_usd, to_usd)


class CoinGeckoMarketDataFeed:
    """Live USD values from CoinGecko (crypto) and open.er-api (fiat)."""

    def __init__(
        self,
        timeout: float | None = None,
        cache_seconds: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout if timeout is not None else settings.MARKET_DATA_TIMEOUT_SECONDS
        self.cache_seconds = (
            cache_seconds if cache_seconds is not None else settings.MARKET_DATA_CACHE_SECONDS
        )
        self._transport = transport
        self._cache: dict[str, tuple[float, Decimal]] = {}

    async def fetch_base_rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_usd = await self._usd_value(from_currency.upper())
        to_usd = await self._usd_value(to_currency.upper())
        return cross_rate(from_usd, to_usd)

    # --- USD values with cache ---

    async def _usd_value(self, code: str) -> Decimal:
        cached = self._cache.get(code)
        if cached is not None and time.monotonic() - cached[0] < self.cache_seconds:
            return cached[1]

        if code == "USD":
            value = Decimal("1")
        elif code in COINGECKO_IDS:
            value = await self._fetch_crypto_usd(code)
        else:
            value = await self._fetch_fiat_usd(code)

        self._cache[code] = (time.monotonic(), value)
        return value

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _fetch_crypto_usd(self, code: str) -> Decimal:
        asset_id = COINGECKO_IDS[code]
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{settings.COINGECKO_API_URL}/simple/price",
                    params={"ids": asset_id, "vs_currencies": "usd"},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("CoinGecko request for %s failed: %s", code, exc)
            raise FeedUnavailableError(f"CoinGecko unavailable for {code}") from exc

        try:
            return Decimal(str(data[asset_id]["usd"]))
        except (KeyError, TypeError) as exc:
            raise FeedUnavailableError(f"CoinGecko returned no USD price for {code}") from exc

    async def _fetch_fiat_usd(self, code: str) -> Decimal:
        try:
            async with self._client() as client:
                resp = await client.get(settings.FIAT_RATE_API_URL)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Fiat rate request for %s failed: %s", code, exc)
            raise FeedUnavailableError(f"Fiat rate API unavailable for {code}") from exc

        if data.get("result") != "success":
            raise FeedUnavailableError(f"Fiat rate API error: {data.get('error-type', data)}")

        try:
            per_usd = Decimal(str(data["rates"][code]))
        except KeyError as exc:
            raise FeedUnavailableError(f"No fiat rate for {code}") from exc
        if per_usd <= 0:
            raise FeedUnavailableError(f"Non-positive fiat rate for {code}")
        # API quotes units of CODE per USD; invert to USD per unit of CODE
        return Decimal("1") / per_usd


# Module-level feed override (for tests)
_feed: MarketDataFeed | None = None


def get_market_data_feed() -> MarketDataFeed:
    """Return the configured market data feed."""
    if _feed is not None:
        return _feed
    if settings.MARKET_DATA_MOCK:
        return MockMarketDataFeed()
    return CoinGeckoMarketDataFeed()


def set_market_data_feed(feed: MarketDataFeed | None) -> None:
    """Override the market data feed (for testing)."""
    global _feed
    _feed = feed
