"""Structured logging configuration using structlog.

Every log entry carries whatever context is set for the current request,
update or task:
- request_id: Correlation ID for the webhook request
- update_id: Telegram update being handled
- user_id / chat_id: Chat user the update came from
- path / method: HTTP request line (webhook and health endpoints)
- task_name / task_id: Celery task context
- timestamp: ISO8601 formatted timestamp

Usage:
    from warmlight.logging import get_logger, configure_logging

    configure_logging()
    logger = get_logger(__name__)
    logger.info("library_migrated", mode="merge", quotes=3)
"""

import logging
import sys
from contextvars import ContextVar

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
update_id_var: ContextVar[int | None] = ContextVar("update_id", default=None)
user_id_var: ContextVar[int | None] = ContextVar("user_id", default=None)
chat_id_var: ContextVar[int | None] = ContextVar("chat_id", default=None)
path_var: ContextVar[str | None] = ContextVar("path", default=None)
method_var: ContextVar[str | None] = ContextVar("method", default=None)
task_name_var: ContextVar[str | None] = ContextVar("task_name", default=None)
task_id_var: ContextVar[str | None] = ContextVar("task_id", default=None)

_CONTEXT_VARS: tuple[ContextVar, ...] = (
    request_id_var,
    update_id_var,
    user_id_var,
    chat_id_var,
    path_var,
    method_var,
    task_name_var,
    task_id_var,
)


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Inject all non-None context variables into the log event dict."""
    for var in _CONTEXT_VARS:
        value = var.get()
        if value is not None:
            event_dict.setdefault(var.name, value)
    return event_dict


def configure_logging(json_format: bool = True) -> None:
    """Configure structlog for the application.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Bot token is part of every Bot API URL; keep httpx request lines out of the logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name."""
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Set HTTP request context for the current context."""
    request_id_var.set(request_id)
    if path is not None:
        path_var.set(path)
    if method is not None:
        method_var.set(method)


def set_update_context(
    update_id: int | None,
    user_id: int | None = None,
    chat_id: int | None = None,
) -> None:
    """Set chat update context once the update has been parsed.

    Args:
        update_id: Telegram update ID.
        user_id: Sender's user ID (optional).
        chat_id: Chat the update belongs to (optional).
    """
    update_id_var.set(update_id)
    user_id_var.set(user_id)
    chat_id_var.set(chat_id)


def clear_update_context() -> None:
    update_id_var.set(None)
    user_id_var.set(None)
    chat_id_var.set(None)


def clear_request_context() -> None:
    """Clear all request-scoped context at the end of a request."""
    request_id_var.set(None)
    path_var.set(None)
    method_var.set(None)
    clear_update_context()


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def configure_task_logging(
    request_id: str | None = None,
    task_name: str | None = None,
    task_id: str | None = None,
) -> None:
    """Configure logging context for a Celery task.

    Call this at the start of each Celery task. All subsequent log entries in
    the task will include these fields.

    Args:
        request_id: Correlation ID passed by whoever enqueued the task.
        task_name: The name of the Celery task.
        task_id: The Celery task ID (from self.request.id).
    """
    request_id_var.set(request_id)
    task_name_var.set(task_name)
    task_id_var.set(task_id)


def clear_task_context() -> None:
    """Clear task context at the end of a task."""
    request_id_var.set(None)
    task_name_var.set(None)
    task_id_var.set(None)
    clear_update_context()
