"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warmlight.api.deps import get_db
from warmlight.errors import ErrorCode, StoreFailureError
from warmlight.logging import get_logger
from warmlight.responses import success_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check.

    Returns 200 if the process is running; dependencies are not checked.
    """
    return success_response({"status": "ok"})


@router.get("/health/db")
def database_health_check(db: Session = Depends(get_db)) -> dict:
    """Readiness check: one round trip to the database."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("database_health_check_failed", error=str(exc))
        raise StoreFailureError(ErrorCode.E_STORE_TIMEOUT, "Database unavailable") from exc
    return success_response({"status": "ok", "database": "ok"})
