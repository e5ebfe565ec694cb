"""FastAPI application creation and configuration.

Builds the webhook service: exception handlers, routes, the shared
UpdateDispatcher and the request-id middleware.

Chat transport lifecycle:
- The transport (TelegramClient, or FakeChatTransport without a bot token) and
  the dispatcher are created with the app and stored in app.state
- On startup the webhook is registered when TELEGRAM_WEBHOOK_URL is set;
  a registration failure is logged and the service still starts

Middleware ordering: RequestIDMiddleware is added last (add_request_id_middleware)
so it runs first and every response carries X-Request-ID.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from warmlight.api.routes import create_api_router
from warmlight.bot.dispatcher import UpdateDispatcher
from warmlight.config import Settings, get_settings
from warmlight.db.session import get_session_factory
from warmlight.errors import AppError, ErrorCode, TransportError
from warmlight.logging import configure_logging, get_logger
from warmlight.middleware.request_id import RequestIDMiddleware
from warmlight.responses import (
    app_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from warmlight.transport import ChatTransportBase, get_transport

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Register the webhook with Telegram on startup."""
    settings: Settings = app.state.settings
    transport: ChatTransportBase = app.state.transport

    if settings.telegram_webhook_url:
        try:
            transport.set_webhook(
                settings.telegram_webhook_url, secret_token=settings.telegram_webhook_secret
            )
        except TransportError as exc:
            logger.error("telegram_webhook_registration_failed", error=exc.message)

    yield

    logger.info("app_shutdown")


def create_app(
    settings: Settings | None = None,
    transport: ChatTransportBase | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings override (for testing).
        transport: Chat transport override (for testing).
        session_factory: Session factory override (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(json_format=settings.log_json)

    app = FastAPI(
        title="Warmlight",
        description="Telegram bot for collecting quotes into shareable libraries",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed JSON or an update that does not parse."""
        return JSONResponse(
            status_code=400,
            content=error_response(ErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    transport = transport or get_transport()
    app.state.settings = settings
    app.state.transport = transport
    app.state.dispatcher = UpdateDispatcher(
        session_factory=session_factory or get_session_factory(),
        transport=transport,
        settings=settings,
    )

    app.include_router(create_api_router())

    logger.info(
        "app_created",
        env=settings.warmlight_env.value,
        transport=type(transport).__name__,
        webhook_secret_required=settings.requires_webhook_secret,
    )
    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call this after every other middleware is added so it runs first.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
