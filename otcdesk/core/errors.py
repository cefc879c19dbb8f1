"""
Typed errors raised by the trading core.

Every error carries a stable ``code`` for clients, a human-readable
``message`` and the HTTP status the API layer answers with. Pricing and
validation errors are final (the user must correct the input);
``UnavailableError`` is the only retryable class.
"""


class OTCError(Exception):
    """Base error for the quote and order lifecycle."""

    code = "error"
    http_status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# --- Pricing / validation ---


class InvalidAmountError(OTCError):
    code = "invalid_amount"
    http_status = 400


class UnknownCurrencyError(OTCError):
    code = "unknown_currency"
    http_status = 400

    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"Unknown or inactive currency: {currency}")


class SameCurrencyError(OTCError):
    code = "same_currency"
    http_status = 400

    def __init__(self, currency: str) -> None:
        super().__init__(f"Cannot swap {currency} for itself")


class InvalidPairError(OTCError):
    code = "invalid_pair"
    http_status = 400


class RateUnavailableError(OTCError):
    code = "rate_unavailable"
    http_status = 404

    def __init__(self, from_currency: str, to_currency: str) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"Exchange rate not available for {from_currency}/{to_currency}"
        )


class BelowMinimumTradeError(OTCError):
    code = "below_minimum_trade"
    http_status = 400


class LimitExceededError(OTCError):
    code = "limit_exceeded"
    http_status = 422


class JustificationRequiredError(OTCError):
    code = "justification_required"
    http_status = 400

    def __init__(self) -> None:
        super().__init__(
            "A special rate reason is required when the quote deviates from standard pricing"
        )


class InvalidSettingError(OTCError):
    code = "invalid_setting"
    http_status = 400


# --- Lifecycle ---


class AlreadyFinalError(OTCError):
    code = "already_final"
    http_status = 409

    def __init__(self, message: str = "This quote is no longer available. Please request a new quote.") -> None:
        super().__init__(message)


class AlreadyAcceptedError(AlreadyFinalError):
    code = "already_accepted"


class QuoteExpiredError(AlreadyFinalError):
    code = "quote_expired"

    def __init__(self) -> None:
        super().__init__("This quote has expired. Please request a new quote.")


class InvalidTransitionError(OTCError):
    code = "invalid_transition"
    http_status = 409


# --- Settlement destinations ---


class DestinationRequiredError(OTCError):
    code = "destination_required"
    http_status = 400


class DestinationMismatchError(OTCError):
    code = "destination_mismatch"
    http_status = 400


# --- Access ---


class NotFoundError(OTCError):
    code = "not_found"
    http_status = 404


class UnauthorizedError(OTCError):
    code = "unauthorized"
    http_status = 403


# --- Transient collaborator failures ---


class UnavailableError(OTCError):
    code = "unavailable"
    http_status = 503
