"""
Celery application configuration.

Defines the Celery app with Redis broker, task autodiscovery,
and the periodic beat schedule for rate refresh and quote expiry.
"""

from celery import Celery

from otcdesk.config import settings

celery_app = Celery(
    "otcdesk",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Auto-discover tasks in the tasks package
celery_app.autodiscover_tasks(["otcdesk.tasks"])

# Beat schedule — periodic tasks
celery_app.conf.beat_schedule = {
    "refresh-exchange-rates": {
        "task": "otcdesk.tasks.rate_tasks.refresh_rates",
        "schedule": settings.RATE_REFRESH_INTERVAL_SECONDS,
    },
    "expire-overdue-quotes": {
        "task": "otcdesk.tasks.quote_tasks.expire_overdue_quotes",
        "schedule": settings.QUOTE_SWEEP_INTERVAL_SECONDS,
    },
}
