"""
Notification service — WhatsApp messages to users and a JSON webhook to
the operator desk.

Runs inside Celery workers only. Unconfigured channels are skipped, and
delivery failures are logged and reported in the result, never raised.
"""

import logging

import httpx

from otcdesk.config import settings

logger = logging.getLogger(__name__)

USER_MESSAGES = {
    "quote.created": (
        "Your {quote_type} quote for {from_amount} {from_currency} -> {to_currency} "
        "is ready: you receive {net_amount} {to_currency}. Valid until {expires_at}."
    ),
    "quote.accepted": "Quote accepted. Your order is being created.",
    "quote.rejected": "Your quote for {from_amount} {from_currency} was declined.",
    "quote.cancelled": "Your quote for {from_amount} {from_currency} was cancelled by the desk.",
    "order.created": (
        "Order {transaction_id} created. Please complete payment of "
        "{from_amount} {from_currency}."
    ),
    "order.status_changed": "Order {transaction_id}: status updated to *{status}*.",
}


class NotificationService:
    """Delivers lifecycle events via WhatsApp (Meta Cloud API) and the desk webhook."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.wa_url = settings.WHATSAPP_API_URL
        self.wa_token = settings.WHATSAPP_ACCESS_TOKEN
        self.wa_phone_id = settings.WHATSAPP_PHONE_NUMBER_ID
        self.webhook_url = settings.ADMIN_NOTIFICATION_WEBHOOK_URL
        self.timeout = settings.NOTIFICATION_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def send_whatsapp(self, phone: str, message: str) -> dict:
        """Send a WhatsApp text message via Meta Cloud API."""
        if not (self.wa_token and self.wa_phone_id):
            logger.info("WhatsApp not configured; skipping message to %s", phone)
            return {"channel": "whatsapp", "status": "skipped"}

        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.wa_url}/{self.wa_phone_id}/messages",
                    headers={"Authorization": f"Bearer {self.wa_token}"},
                    json={
                        "messaging_product": "whatsapp",
                        "to": phone,
                        "type": "text",
                        "text": {"body": message},
                    },
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("WhatsApp delivery to %s failed: %s", phone, exc)
            return {"channel": "whatsapp", "status": "failed", "error": str(exc)}
        return {"channel": "whatsapp", "status": "sent"}

    async def notify_desk(self, event: str, payload: dict) -> dict:
        """POST the raw event to the operator desk webhook."""
        if not self.webhook_url:
            return {"channel": "webhook", "status": "skipped"}

        try:
            async with self._client() as client:
                resp = await client.post(
                    self.webhook_url, json={"event": event, "data": payload},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Desk webhook delivery of %s failed: %s", event, exc)
            return {"channel": "webhook", "status": "failed", "error": str(exc)}
        return {"channel": "webhook", "status": "sent"}

    async def dispatch(self, event: str, payload: dict) -> dict:
        """Deliver one lifecycle event to every configured channel."""
        results = {"webhook": await self.notify_desk(event, payload)}

        template = USER_MESSAGES.get(event)
        phone = payload.get("phone")
        if template and phone:
            try:
                message = template.format(**payload)
            except KeyError as exc:
                logger.warning("Payload for %s missing %s", event, exc)
            else:
                results["whatsapp"] = await self.send_whatsapp(phone, message)
        return results


notification_service = NotificationService()
