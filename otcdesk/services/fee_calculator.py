"""
Fee Calculator — the single place a customer-facing price is computed.

Pure functions only: no I/O, no clock, no randomness. Preview and quote
generation both call ``price`` so the two can never diverge.

    rate           = final buy rate (buy) | final sell rate (sell, swap)
    to_amount      = from_amount x rate                  (to-currency units)
    admin_fee      = from_amount x admin fee percentage  (from-currency units)
    withdrawal_fee = fixed per-fiat fee when paying out fiat, else 0
    total_fee      = admin_fee + withdrawal_fee
    net_amount     = max(0, to_amount - withdrawal_fee)

Amounts are rounded half-up to the decimals of the currency they are
denominated in; the exchange rate is kept at 18 decimal places.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Mapping

from otcdesk.core.errors import (
    InvalidAmountError,
    InvalidPairError,
    SameCurrencyError,
    UnknownCurrencyError,
)
from otcdesk.models.currency import AssetClass, Currency
from otcdesk.models.quote import TradeType
from otcdesk.schemas.rate import RatePair

RATE_QUANTUM = Decimal("1e-18")
ZERO = Decimal("0")

_PRICING_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP)

# (from asset class, to asset class) each trade type accepts
TRADE_SHAPES: dict[TradeType, tuple[AssetClass, AssetClass]] = {
    TradeType.BUY: (AssetClass.FIAT, AssetClass.CRYPTO),
    TradeType.SELL: (AssetClass.CRYPTO, AssetClass.FIAT),
    TradeType.SWAP: (AssetClass.CRYPTO, AssetClass.CRYPTO),
}


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeeConfiguration:
    """Admin fee percentage (fraction) and fixed withdrawal fee per fiat code."""
    admin_fee_percentage: Decimal
    withdrawal_fees: Mapping[str, Decimal] = field(default_factory=dict)
    updated_at: datetime | None = None

    def withdrawal_fee_for(self, currency: str) -> Decimal:
        return Decimal(self.withdrawal_fees.get(currency.upper(), ZERO))


@dataclass(frozen=True)
class PricingResult:
    trade_type: TradeType
    from_currency: str
    to_currency: str
    from_amount: Decimal
    exchange_rate: Decimal
    to_amount: Decimal
    admin_fee: Decimal
    withdrawal_fee: Decimal
    total_fee: Decimal
    net_amount: Decimal

    def priced_fields(self) -> dict[str, Decimal]:
        """The columns a quote (and later its order) stores verbatim."""
        return {
            "exchange_rate": self.exchange_rate,
            "to_amount": self.to_amount,
            "admin_fee": self.admin_fee,
            "withdrawal_fee": self.withdrawal_fee,
            "total_fee": self.total_fee,
            "net_amount": self.net_amount,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _lookup(code: str, catalog: Mapping[str, Currency]) -> Currency:
    currency = catalog.get(code)
    if currency is None or not currency.is_active:
        raise UnknownCurrencyError(code)
    return currency


def validate_trade(
    trade_type: TradeType,
    from_currency: str,
    to_currency: str,
    from_amount: Decimal,
    catalog: Mapping[str, Currency],
) -> tuple[Currency, Currency]:
    """
    Check a trade request against the active catalog.

    Returns the (from, to) Currency rows. Raises InvalidAmountError,
    UnknownCurrencyError, SameCurrencyError or InvalidPairError.
    """
    if from_amount is None or not from_amount.is_finite() or from_amount <= ZERO:
        raise InvalidAmountError("Amount must be greater than zero")

    from_code = from_currency.upper()
    to_code = to_currency.upper()
    source = _lookup(from_code, catalog)
    target = _lookup(to_code, catalog)

    if trade_type == TradeType.SWAP and from_code == to_code:
        raise SameCurrencyError(from_code)

    expected = TRADE_SHAPES[trade_type]
    if (source.asset_class, target.asset_class) != expected:
        raise InvalidPairError(
            f"A {trade_type.value} trade must go from {expected[0].value} "
            f"to {expected[1].value}, got {from_code}/{to_code}"
        )

    if from_amount.normalize().as_tuple().exponent < -source.decimals:
        raise InvalidAmountError(
            f"{from_code} amounts support at most {source.decimals} decimal places"
        )

    return source, target


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def select_rate(trade_type: TradeType, rate_pair: RatePair) -> Decimal:
    """Buy trades pay the desk's buy rate; sells and swaps receive its sell rate."""
    if trade_type == TradeType.BUY:
        return rate_pair.final_buy_rate
    return rate_pair.final_sell_rate


def _compute(
    trade_type: TradeType,
    source: Currency,
    target: Currency,
    from_amount: Decimal,
    exchange_rate: Decimal,
    admin_fee: Decimal,
    withdrawal_fee: Decimal,
) -> PricingResult:
    with localcontext(_PRICING_CONTEXT):
        rate = exchange_rate.quantize(RATE_QUANTUM)
        to_amount = (from_amount * rate).quantize(target.quantum)
        admin_fee = admin_fee.quantize(source.quantum)
        withdrawal_fee = withdrawal_fee.quantize(target.quantum)
        total_fee = admin_fee + withdrawal_fee
        net_amount = max(ZERO, to_amount - withdrawal_fee).quantize(target.quantum)

    return PricingResult(
        trade_type=trade_type,
        from_currency=source.code,
        to_currency=target.code,
        from_amount=from_amount,
        exchange_rate=rate,
        to_amount=to_amount,
        admin_fee=admin_fee,
        withdrawal_fee=withdrawal_fee,
        total_fee=total_fee,
        net_amount=net_amount,
    )


def price(
    trade_type: TradeType,
    from_currency: str,
    to_currency: str,
    from_amount: Decimal,
    rate_pair: RatePair,
    fee_config: FeeConfiguration,
    catalog: Mapping[str, Currency],
) -> PricingResult:
    """Price a standard trade from the desk's derived rate pair."""
    source, target = validate_trade(
        trade_type, from_currency, to_currency, from_amount, catalog,
    )
    if (rate_pair.from_currency, rate_pair.to_currency) != (source.code, target.code):
        raise InvalidPairError(
            f"Rate pair {rate_pair.pair} does not match {source.code}/{target.code}"
        )

    with localcontext(_PRICING_CONTEXT):
        admin_fee = from_amount * fee_config.admin_fee_percentage
    withdrawal_fee = (
        fee_config.withdrawal_fee_for(target.code) if target.is_fiat else ZERO
    )

    return _compute(
        trade_type, source, target, from_amount,
        select_rate(trade_type, rate_pair), admin_fee, withdrawal_fee,
    )


def price_override(
    trade_type: TradeType,
    from_currency: str,
    to_currency: str,
    from_amount: Decimal,
    exchange_rate: Decimal,
    admin_fee: Decimal,
    withdrawal_fee: Decimal,
    catalog: Mapping[str, Currency],
) -> PricingResult:
    """
    Price a privileged trade from operator-supplied rate and fee amounts.

    The arithmetic (gross, total, net clamping, rounding) is identical to
    ``price``; only the inputs differ.
    """
    source, target = validate_trade(
        trade_type, from_currency, to_currency, from_amount, catalog,
    )
    if exchange_rate is None or not exchange_rate.is_finite() or exchange_rate <= ZERO:
        raise InvalidAmountError("Exchange rate must be greater than zero")
    for label, value in (("Admin fee", admin_fee), ("Withdrawal fee", withdrawal_fee)):
        if value is None or not value.is_finite() or value < ZERO:
            raise InvalidAmountError(f"{label} must not be negative")
    if target.is_crypto and withdrawal_fee != ZERO:
        raise InvalidAmountError("Crypto payouts carry no withdrawal fee")

    return _compute(
        trade_type, source, target, from_amount,
        exchange_rate, admin_fee, withdrawal_fee,
    )


def same_pricing(a: PricingResult, b: PricingResult) -> bool:
    """True when two results carry identical priced fields."""
    return a.priced_fields() == b.priced_fields()
