"""
Lifecycle event emission — fire-and-forget notification/audit sink.

The core emits on quote created / accepted / rejected / cancelled and on
order created / status changed. Delivery happens in a Celery worker; a
broker outage is logged here and never fails the business operation.
"""

import enum
import logging
from typing import Protocol

from otcdesk.models.order import Order
from otcdesk.models.quote import Quote

logger = logging.getLogger(__name__)


class LifecycleEvent(str, enum.Enum):
    QUOTE_CREATED = "quote.created"
    QUOTE_ACCEPTED = "quote.accepted"
    QUOTE_REJECTED = "quote.rejected"
    QUOTE_CANCELLED = "quote.cancelled"
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"


class EventSink(Protocol):
    def emit(self, event: LifecycleEvent, payload: dict) -> None:
        ...


class CeleryEventSink:
    """Queues a ``dispatch_event`` task per event."""

    def emit(self, event: LifecycleEvent, payload: dict) -> None:
        from otcdesk.tasks.notification_tasks import dispatch_event

        try:
            dispatch_event.delay(event.value, payload)
        except Exception as exc:
            logger.warning("Could not queue %s event: %s", event.value, exc)


_sink: EventSink | None = None


def get_event_sink() -> EventSink:
    if _sink is not None:
        return _sink
    return CeleryEventSink()


def set_event_sink(sink: EventSink | None) -> None:
    """Override the event sink (for testing)."""
    global _sink
    _sink = sink


# ---------------------------------------------------------------------------
# Payloads (JSON-serializable)
# ---------------------------------------------------------------------------


def quote_payload(quote: Quote, phone: str | None = None) -> dict:
    return {
        "quote_id": str(quote.id),
        "user_id": str(quote.user_id),
        "phone": phone,
        "origin": quote.origin.value,
        "quote_type": quote.quote_type.value,
        "from_currency": quote.from_currency,
        "to_currency": quote.to_currency,
        "from_amount": str(quote.from_amount),
        "exchange_rate": str(quote.exchange_rate),
        "net_amount": str(quote.net_amount),
        "status": quote.status.value,
        "expires_at": quote.expires_at.isoformat() if quote.expires_at else None,
    }


def order_payload(order: Order, phone: str | None = None) -> dict:
    return {
        "order_id": str(order.id),
        "transaction_id": order.transaction_id,
        "quote_id": str(order.quote_id),
        "user_id": str(order.user_id),
        "phone": phone,
        "order_type": order.order_type.value,
        "from_currency": order.from_currency,
        "to_currency": order.to_currency,
        "from_amount": str(order.from_amount),
        "net_amount": str(order.net_amount),
        "status": order.status.value,
    }
