"""Celery application configuration.

The worker runs one periodic job, the active-source expiry sweep, on a beat
schedule of DEACTIVATOR_INTERVAL_MINS.

Usage:
    celery -A apps.worker.main:celery_app worker --beat --loglevel=info
"""

from celery import Celery

from warmlight.config import get_settings

settings = get_settings()

celery_app = Celery("warmlight")

celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

celery_app.conf.task_default_queue = "default"

celery_app.conf.beat_schedule = {
    "deactivate-expired-sources": {
        "task": "deactivate_expired_sources",
        "schedule": settings.deactivator_interval,
        # A run that misses its slot is superseded by the next one
        "options": {"expires": settings.deactivator_interval.total_seconds()},
    },
}

celery_app.conf.task_always_eager = False


def get_celery_app() -> Celery:
    """Get the Celery application instance."""
    return celery_app
