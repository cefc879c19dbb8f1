"""
Quote model — a time-boxed, locked price offer for a single trade.

Standard and privileged quotes share this table and one lifecycle:

    pending ──► accepted | rejected | cancelled | expired   (all terminal)

Once a quote leaves ``pending`` its priced fields and status are frozen.
Expiry is evaluated lazily against ``expires_at`` on every read path, so a
stored ``pending`` status past its deadline is still treated as expired.
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from otcdesk.database import Base, pg_enum

AMOUNT_NUMERIC = Numeric(precision=38, scale=18)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TradeType(str, enum.Enum):
    BUY = "buy"      # fiat -> crypto
    SELL = "sell"    # crypto -> fiat
    SWAP = "swap"    # crypto -> crypto


class QuoteOrigin(str, enum.Enum):
    STANDARD = "standard"
    PRIVILEGED = "privileged"


class QuoteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Status transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[QuoteStatus, set[QuoteStatus]] = {
    QuoteStatus.PENDING: {
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.CANCELLED,
        QuoteStatus.EXPIRED,
    },
    QuoteStatus.ACCEPTED: set(),
    QuoteStatus.REJECTED: set(),
    QuoteStatus.CANCELLED: set(),
    QuoteStatus.EXPIRED: set(),
}

# Priced fields copied verbatim onto the order at acceptance
PRICED_FIELDS = (
    "exchange_rate",
    "to_amount",
    "admin_fee",
    "withdrawal_fee",
    "total_fee",
    "net_amount",
)


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (
        CheckConstraint("from_amount > 0", name="ck_quotes_from_amount_positive"),
        CheckConstraint("net_amount >= 0", name="ck_quotes_net_non_negative"),
        CheckConstraint(
            "origin = 'standard' OR issued_by IS NOT NULL",
            name="ck_quotes_privileged_issuer",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # Identity
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    origin: Mapped[QuoteOrigin] = mapped_column(
        pg_enum(QuoteOrigin, "quoteorigin"), default=QuoteOrigin.STANDARD,
    )
    issued_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True,
    )

    # Trade intent
    quote_type: Mapped[TradeType] = mapped_column(
        pg_enum(TradeType, "tradetype"), nullable=False,
    )
    from_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    to_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    from_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)

    # Priced outputs
    exchange_rate: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    to_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    admin_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    withdrawal_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    total_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)

    # Lifecycle
    status: Mapped[QuoteStatus] = mapped_column(
        pg_enum(QuoteStatus, "quotestatus"), default=QuoteStatus.PENDING, index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Privileged extras
    special_rate_reason: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="quotes", foreign_keys=[user_id])

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    @property
    def is_privileged(self) -> bool:
        return self.origin == QuoteOrigin.PRIVILEGED

    def is_expired(self, now: datetime | None = None) -> bool:
        """True when the validity window has closed (regardless of stored status)."""
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def effective_status(self, now: datetime | None = None) -> QuoteStatus:
        """Stored status, with an overdue ``pending`` quote reported as expired."""
        if self.status == QuoteStatus.PENDING and self.is_expired(now):
            return QuoteStatus.EXPIRED
        return self.status

    def is_actionable(self, now: datetime | None = None) -> bool:
        return self.effective_status(now) == QuoteStatus.PENDING

    # ------------------------------------------------------------------
    # Status transition validation
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(from_status: QuoteStatus, to_status: QuoteStatus) -> bool:
        """Check whether a status transition is allowed."""
        return to_status in VALID_TRANSITIONS.get(from_status, set())

    def transition_to(self, new_status: QuoteStatus, now: datetime | None = None) -> None:
        """
        Transition to *new_status* if the move is valid.

        Raises ValueError if the transition is not allowed.
        Also stamps ``accepted_at`` / ``closed_at``.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise ValueError(
                f"Invalid transition: {self.status.value} -> {new_status.value}"
            )
        now = now or datetime.now(timezone.utc)
        self.status = new_status
        if new_status == QuoteStatus.ACCEPTED:
            self.accepted_at = now
        else:
            self.closed_at = now
        self.updated_at = now

    def priced_fields(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in PRICED_FIELDS}

    def __repr__(self) -> str:
        return (
            f"<Quote {self.id} {self.quote_type.value if self.quote_type else 'N/A'} "
            f"{self.from_amount} {self.from_currency}->{self.to_currency} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(Quote, "init")
def _set_quote_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "origin" not in kwargs:
        target.origin = QuoteOrigin.STANDARD
    if "status" not in kwargs:
        target.status = QuoteStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
