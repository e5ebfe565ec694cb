"""FastAPI dependencies for route handlers."""

from fastapi import Request

from warmlight.bot.dispatcher import UpdateDispatcher
from warmlight.db.session import get_db

__all__ = ["get_db", "get_dispatcher"]


def get_dispatcher(request: Request) -> UpdateDispatcher:
    """Get the shared update dispatcher created at app startup."""
    return request.app.state.dispatcher
