"""
Rate Celery tasks — scheduled refresh of every active currency pair.

Runs on the interval defined by RATE_REFRESH_INTERVAL_SECONDS. Operators
can also trigger a refresh through the rates API.
"""

import asyncio
import logging

from otcdesk.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _refresh_rates_async() -> dict:
    """
    Async inner function that refreshes all derived rates.

    Uses async_session() directly (not FastAPI deps — Celery runs
    outside request lifecycle).
    """
    from otcdesk.database import async_session, engine
    from otcdesk.redis_client import redis
    from otcdesk.services.rate_service import RateService

    try:
        async with async_session() as session:
            report = await RateService(session, redis).refresh_all()
            await session.commit()
        return report.model_dump(mode="json")
    finally:
        # Pooled connections are bound to this task's event loop
        await engine.dispose()
        await redis.aclose()


@celery_app.task(name="otcdesk.tasks.rate_tasks.refresh_rates")
def refresh_rates():
    """Refresh all derived rates from the market-data feed."""
    logger.info("Starting scheduled rate refresh")
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_refresh_rates_async())
        logger.info(
            "Rate refresh completed: %d refreshed, %d failed",
            len(result["refreshed"]),
            len(result["failed"]),
        )
        return result
    except Exception:
        logger.exception("Rate refresh failed")
        raise
    finally:
        loop.close()
