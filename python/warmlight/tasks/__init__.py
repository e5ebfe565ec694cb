"""Celery tasks for Warmlight.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.
"""

from warmlight.tasks.deactivate_sources import deactivate_expired_sources

__all__ = ["deactivate_expired_sources"]
