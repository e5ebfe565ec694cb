"""Active-source expiry sweep.

Celery beat job: deactivate_expired_sources
- One conditional UPDATE ... RETURNING clears every active source whose
  expiry is in the past, so concurrent runs (or a racing /deactivatesource)
  never clear or notify the same user twice
- Each returned user is told their active source expired
- A failed notification is logged and counted; it does not stop the loop and
  is not retried
"""

from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from warmlight.bot import strings
from warmlight.celery import celery_app
from warmlight.db.session import get_session_factory
from warmlight.errors import TransportError
from warmlight.logging import clear_task_context, configure_task_logging, get_logger
from warmlight.schemas.library import SweepResult
from warmlight.services.sources import deactivate_expired_sources as clear_expired_sources
from warmlight.transport import ChatTransportBase, get_transport

logger = get_logger(__name__)


def sweep_expired_active_sources(
    transport: ChatTransportBase,
    session_factory: sessionmaker[Session] | None = None,
    now: datetime | None = None,
) -> SweepResult:
    """Clear expired active sources and notify the affected users.

    Args:
        transport: Chat transport used for the notifications.
        session_factory: Session factory (defaults to the process-wide one).
        now: Current time (defaults to the wall clock).

    Returns:
        Counts of cleared users and delivered/failed notifications.
    """
    session_factory = session_factory or get_session_factory()
    with session_factory() as db:
        expired_users = clear_expired_sources(db, now)

    result = SweepResult(expired=len(expired_users))
    for expired in expired_users:
        try:
            transport.send_message(expired.chat_id, strings.ACTIVE_SOURCE_EXPIRED)
        except TransportError as exc:
            result.failed += 1
            result.failed_user_ids.append(expired.user_id)
            logger.warning(
                "notification_failed",
                user_id=expired.user_id,
                chat_id=expired.chat_id,
                error=exc.message,
            )
        else:
            result.notified += 1

    return result


@celery_app.task(bind=True, max_retries=0, name="deactivate_expired_sources")
def deactivate_expired_sources(self, request_id: str | None = None) -> dict:
    """Periodic sweep entry point.

    Returns:
        The SweepResult as a dict.
    """
    log_ctx = {"task_name": "deactivate_expired_sources", "task_id": self.request.id}
    configure_task_logging(request_id=request_id, **log_ctx)
    try:
        result = sweep_expired_active_sources(get_transport())
        if result.expired:
            logger.info(
                "sweep_complete",
                expired=result.expired,
                notified=result.notified,
                failed=result.failed,
            )
        else:
            logger.debug("sweep_complete", expired=0)
        return result.model_dump()
    finally:
        clear_task_context()
