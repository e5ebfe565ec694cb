"""Database session management and transaction helpers.

Provides:
- Session factories for webhook handling and Celery tasks
- Transaction context manager for mutations
- Per-transaction statement timeout for long multi-statement work
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from warmlight.db.engine import get_engine
from warmlight.errors import AppError, ErrorCode, StoreFailureError
from warmlight.logging import get_logger

logger = get_logger(__name__)


def create_session_factory(engine: Any = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine.

    Args:
        engine: SQLAlchemy engine. If None, uses the default engine.

    Returns:
        Configured sessionmaker instance.
    """
    if engine is None:
        engine = get_engine()

    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# Default session factory - created lazily
_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    Yields:
        A database session that is automatically closed after use.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Context manager for database transactions.

    Commits on success, rolls back on exception. Application errors and
    IntegrityError propagate unchanged (callers translate constraint
    violations into domain errors); other driver errors are re-raised as
    StoreFailureError.

    Usage:
        with transaction(db):
            db.execute(...)
            db.execute(...)
        # Committed if no exception
    """
    try:
        yield
        db.commit()
    except (AppError, IntegrityError):
        db.rollback()
        raise
    except OperationalError as exc:
        db.rollback()
        logger.warning("store_operational_error", error=str(exc.orig))
        raise StoreFailureError(
            ErrorCode.E_STORE_TIMEOUT, "Store timed out or is unavailable"
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store_error", error=str(exc))
        raise StoreFailureError() from exc
    except Exception:
        db.rollback()
        raise


def set_local_statement_timeout(db: Session, timeout_ms: int) -> None:
    """Raise the statement timeout for the rest of the current transaction.

    Only PostgreSQL supports this; on other backends it is a no-op.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
