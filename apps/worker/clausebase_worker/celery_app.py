"""Celery application configuration."""

from celery import Celery

from clausebase_worker.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "clausebase_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
)

# Import tasks to register them with Celery
# This must be done after celery_app is created
from clausebase_worker import tasks  # noqa: F401, E402
