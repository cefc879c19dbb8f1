"""
Manual rate refresh — re-prices every active currency pair from the command line.

Usage:
    python scripts/refresh_rates.py

Useful after editing the currency catalog, without waiting for the Celery
beat schedule.
"""

import asyncio
import json

from otcdesk.database import async_session, engine
from otcdesk.redis_client import redis
from otcdesk.services.rate_service import RateService


async def main():
    """Run a single refresh and print the report."""
    print("Starting manual rate refresh...")
    async with async_session() as session:
        report = await RateService(session, redis).refresh_all()
        await session.commit()

    print("\n=== Rate Refresh Report ===")
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    print(f"\nRefreshed: {len(report.refreshed)}")
    print(f"Failed: {len(report.failed)}")

    await engine.dispose()
    await redis.aclose()


if __name__ == "__main__":
    asyncio.run(main())
