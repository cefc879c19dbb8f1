"""
Order model — the durable record created when a quote is accepted.

- TXN-{quote}-{timestamp} transaction id, unique
- exactly one order per quote (unique quote_id)
- priced fields copied verbatim from the accepted quote, never recomputed
- exactly one settlement destination (bank account xor crypto wallet)
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
from otcdesk.models.quote import TradeType

AMOUNT_NUMERIC = Numeric(precision=38, scale=18)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class OrderStatus(str, enum.Enum):
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Status transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PAYMENT_PENDING: {
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    },
    OrderStatus.PAYMENT_CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.COMPLETED,
        OrderStatus.FAILED,
    },
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.FAILED: set(),
}


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("from_amount > 0", name="ck_orders_from_amount_positive"),
        CheckConstraint(
            "(bank_account_id IS NOT NULL) <> (crypto_wallet_id IS NOT NULL)",
            name="ck_orders_single_destination",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # Reference
    transaction_id: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False,
    )

    # Owner / origin
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    quote_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quotes.id"), unique=True, nullable=False,
    )

    # Trade
    order_type: Mapped[TradeType] = mapped_column(
        pg_enum(TradeType, "tradetype"), nullable=False,
    )
    from_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    to_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    from_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)

    # Priced fields (copied from the quote)
    exchange_rate: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    to_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    admin_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    withdrawal_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    total_fee: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)

    # Settlement destination
    bank_account_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=True,
    )
    crypto_wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("crypto_wallets.id"), nullable=True,
    )
    settlement_reference: Mapped[str | None] = mapped_column(String(100))

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        pg_enum(OrderStatus, "orderstatus"),
        default=OrderStatus.PAYMENT_PENDING,
        index=True,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text)

    # Lifecycle timestamps
    payment_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

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
    user = relationship("User", back_populates="orders")

    # ------------------------------------------------------------------
    # Transaction id
    # ------------------------------------------------------------------

    @staticmethod
    def generate_transaction_id(quote_id: uuid.UUID, created_at: datetime) -> str:
        """
        TXN-{last 8 hex chars of the quote id}-{creation time in base-36 ms}.

        Unique because quote_id is unique per order.
        """
        millis = int(created_at.timestamp() * 1000)
        return f"TXN-{quote_id.hex[-8:]}-{_base36(millis)}".upper()

    @property
    def destination_id(self) -> uuid.UUID | None:
        return self.bank_account_id or self.crypto_wallet_id

    # ------------------------------------------------------------------
    # Status transition validation
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """Check whether a status transition is allowed."""
        allowed = VALID_TRANSITIONS.get(from_status, set())
        return to_status in allowed

    def transition_to(self, new_status: OrderStatus) -> None:
        """
        Transition to *new_status* if the move is valid.

        Raises ValueError if the transition is not allowed.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise ValueError(
                f"Invalid transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

        now = datetime.now(timezone.utc)
        if new_status == OrderStatus.PAYMENT_CONFIRMED:
            self.payment_confirmed_at = now
        elif new_status == OrderStatus.COMPLETED:
            self.completed_at = now
        self.updated_at = now

    def __repr__(self) -> str:
        return (
            f"<Order {self.transaction_id} "
            f"{self.from_amount} {self.from_currency}->{self.to_currency} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(Order, "init")
def _set_order_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "status" not in kwargs:
        target.status = OrderStatus.PAYMENT_PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
    if "transaction_id" not in kwargs and "quote_id" in kwargs:
        target.transaction_id = Order.generate_transaction_id(
            kwargs["quote_id"], kwargs.get("created_at") or target.created_at,
        )
