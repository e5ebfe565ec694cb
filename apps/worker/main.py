"""Celery worker entrypoint.

Run with: celery -A apps.worker.main:celery_app worker --beat --loglevel=info

This module imports the Celery app and explicitly registers all tasks.
Task definitions are in the warmlight.tasks package - no autodiscovery.

Logging Convention:
- Task log entries include request_id, task_name, task_id when available
- configure_task_logging() is called at the start of each task

Beat:
- deactivate_expired_sources runs every DEACTIVATOR_INTERVAL_MINS minutes.
  Run exactly one beat process per deployment.
"""

from celery.signals import worker_process_init

from warmlight.celery import celery_app
from warmlight.config import get_settings
from warmlight.logging import configure_logging, get_logger

# Import tasks to register them with Celery
from warmlight.tasks import deactivate_expired_sources  # noqa: F401


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts."""
    settings = get_settings()
    configure_logging(json_format=settings.log_json)
    logger = get_logger(__name__)
    logger.info(
        "celery_worker_started",
        deactivator_interval_mins=settings.deactivator_interval_mins,
    )


__all__ = ["celery_app"]
