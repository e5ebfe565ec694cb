"""Database module for Warmlight.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from warmlight.db.engine import create_db_engine, get_engine
from warmlight.db.models import (
    Base,
    Library,
    LibraryChangeMode,
    Quote,
    QuoteSource,
    QuoteTag,
    Source,
    SourceKind,
    Tag,
    User,
    UserState,
)
from warmlight.db.session import (
    create_session_factory,
    get_db,
    get_session_factory,
    transaction,
)

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "UserState",
    "SourceKind",
    "LibraryChangeMode",
    # Models
    "Library",
    "User",
    "Source",
    "Tag",
    "Quote",
    "QuoteTag",
    "QuoteSource",
]
