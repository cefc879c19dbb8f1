"""
Order Materializer — turns an accepted quote into its single order.

The order copies the quote's priced fields verbatim; nothing here reads a
rate or calls the fee calculator, so the customer pays exactly what was
quoted regardless of market movement after quote creation. The unique
``orders.quote_id`` constraint backs the one-order-per-quote rule.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.errors import (
    AlreadyAcceptedError,
    DestinationMismatchError,
    DestinationRequiredError,
    InvalidTransitionError,
)
from otcdesk.models.destination import BankAccount, CryptoWallet, DestinationKind
from otcdesk.models.order import Order, OrderStatus
from otcdesk.models.quote import PRICED_FIELDS, Quote, QuoteStatus, TradeType
from otcdesk.services.destination_registry import Destination, SettlementDestinationRegistry

logger = logging.getLogger(__name__)

# Destination kind each trade type pays out to
REQUIRED_DESTINATION = {
    TradeType.SELL: DestinationKind.BANK_ACCOUNT,
    TradeType.BUY: DestinationKind.CRYPTO_WALLET,
    TradeType.SWAP: DestinationKind.CRYPTO_WALLET,
}


class OrderMaterializer:

    def __init__(self, db: AsyncSession, registry: SettlementDestinationRegistry | None = None):
        self.db = db
        self.registry = registry or SettlementDestinationRegistry(db)

    async def resolve_destination(
        self, quote: Quote, destination_id: uuid.UUID | None,
    ) -> Destination:
        """
        Look up and check the settlement destination for *quote*.

        Raises DestinationRequiredError when none is given and
        DestinationMismatchError when it is unknown, of the wrong kind,
        owned by someone else, in another currency or unverified.
        """
        if destination_id is None:
            raise DestinationRequiredError(
                "A settlement destination is required to accept this quote"
            )

        destination = await self.registry.get_destination(destination_id)
        if destination is None or destination.user_id != quote.user_id:
            raise DestinationMismatchError("Settlement destination not found for this user")

        expected = REQUIRED_DESTINATION[quote.quote_type]
        if destination.kind != expected:
            raise DestinationMismatchError(
                f"A {quote.quote_type.value} order pays out to a "
                f"{expected.value.replace('_', ' ')}"
            )
        if destination.currency != quote.to_currency:
            raise DestinationMismatchError(
                f"Destination currency {destination.currency} does not match "
                f"{quote.to_currency}"
            )
        if not destination.is_verified:
            raise DestinationMismatchError("Settlement destination is not verified")

        return destination

    async def materialize(self, quote: Quote, destination: Destination) -> Order:
        """
        Create the order for an accepted quote.

        Must run in the same transaction that moved the quote to accepted.
        Raises AlreadyAcceptedError if an order already exists for the quote.
        """
        if quote.status != QuoteStatus.ACCEPTED:
            raise InvalidTransitionError(
                f"Cannot create an order from a {quote.status.value} quote"
            )

        created_at = datetime.now(timezone.utc)
        order = Order(
            transaction_id=Order.generate_transaction_id(quote.id, created_at),
            user_id=quote.user_id,
            quote_id=quote.id,
            order_type=quote.quote_type,
            from_currency=quote.from_currency,
            to_currency=quote.to_currency,
            from_amount=quote.from_amount,
            bank_account_id=destination.id if isinstance(destination, BankAccount) else None,
            crypto_wallet_id=destination.id if isinstance(destination, CryptoWallet) else None,
            status=OrderStatus.PAYMENT_PENDING,
            created_at=created_at,
            updated_at=created_at,
            **{name: getattr(quote, name) for name in PRICED_FIELDS},
        )

        self.db.add(order)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            logger.warning("Duplicate order for quote %s rejected: %s", quote.id, exc.orig)
            raise AlreadyAcceptedError() from exc

        logger.info(
            "Order %s created from quote %s (%s %s %s -> %s)",
            order.transaction_id, quote.id, order.order_type.value,
            order.from_amount, order.from_currency, order.to_currency,
        )
        return order
