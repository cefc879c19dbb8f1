"""
Notification Celery tasks — async delivery of lifecycle events.

Offloads WhatsApp and desk-webhook delivery to background workers so
quote and order operations never wait on (or fail because of) them.
"""

import asyncio
import logging

from otcdesk.services.notification_service import notification_service
from otcdesk.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="otcdesk.tasks.notification_tasks.dispatch_event")
def dispatch_event(event: str, payload: dict):
    """Deliver one lifecycle event to the user and the operator desk."""
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(notification_service.dispatch(event, payload))
        logger.info("Event %s dispatched: %s", event, result)
        return result
    finally:
        loop.close()
