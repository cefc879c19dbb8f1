"""
Quote Celery tasks — normalise overdue pending quotes to expired.

Expiry is already enforced on every read and action; this sweep only
keeps the stored status clean at rest.
"""

import asyncio
import logging
from datetime import datetime, timezone

from otcdesk.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _expire_overdue_quotes_async() -> dict:
    from otcdesk.database import async_session, engine
    from otcdesk.redis_client import redis
    from otcdesk.services.quote_service import QuoteService

    now = datetime.now(timezone.utc)
    try:
        async with async_session() as session:
            count = await QuoteService(session, redis).expire_overdue(now)
            await session.commit()
    finally:
        await engine.dispose()

    return {"expired_count": count, "swept_at": now.isoformat()}


@celery_app.task(name="otcdesk.tasks.quote_tasks.expire_overdue_quotes")
def expire_overdue_quotes():
    """Mark pending quotes past their expires_at as expired."""
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_expire_overdue_quotes_async())
        logger.info("Quote sweep completed: %d quotes expired", result["expired_count"])
        return result
    except Exception:
        logger.exception("Quote sweep failed")
        raise
    finally:
        loop.close()
