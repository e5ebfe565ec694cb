"""Library token exchange.

An owner issues a time-limited token for their library; another user submits
it to join. At most one token is live per library: issuing overwrites the
previous one, and a successful join or an explicit revoke clears it.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from warmlight.db.models import Library, User
from warmlight.db.session import transaction
from warmlight.errors import (
    ErrorCode,
    LibraryNotFoundError,
    NotFoundError,
    TokenExpiredError,
    TokenNotFoundError,
)
from warmlight.logging import get_logger
from warmlight.schemas.library import TokenGrant

logger = get_logger(__name__)


def get_library(db: Session, library_id: int) -> Library:
    """Load a library by ID.

    Raises:
        LibraryNotFoundError: If the library does not exist.
    """
    library = db.execute(
        select(Library).where(Library.id == library_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if library is None:
        raise LibraryNotFoundError()
    return library


def issue_token(
    db: Session, user_id: int, lifetime: timedelta, now: datetime | None = None
) -> TokenGrant | None:
    """Issue a fresh token for the library the user belongs to.

    Only the library owner may issue a token; for anyone else nothing changes
    and None is returned.

    Args:
        db: Database session.
        user_id: The requesting user.
        lifetime: How long the token stays valid.
        now: Current time (defaults to the wall clock).

    Returns:
        The new token grant, or None if the user is not the owner.

    Raises:
        NotFoundError: If the user does not exist.
    """
    now = now or datetime.now(UTC)

    with transaction(db):
        user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
        if user is None:
            raise NotFoundError(ErrorCode.E_USER_NOT_FOUND, f"User {user_id} not found")

        library = db.execute(
            select(Library)
            .where(Library.id == user.library_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

        if library.owner_id != user_id:
            logger.info("library_token_refused", user_id=user_id, library_id=library.id)
            return None

        token = uuid4()
        expires_on = now + lifetime
        db.execute(
            update(Library)
            .where(Library.id == library.id)
            .values(token=token, token_expires_on=expires_on)
        )

    logger.info("library_token_issued", library_id=library.id, expires_on=expires_on.isoformat())
    return TokenGrant(token=token, expires_on=expires_on, library_id=library.id)


def resolve_token(db: Session, token: UUID) -> Library:
    """Look up the library a token belongs to.

    Raises:
        TokenNotFoundError: If no library currently holds this token.
    """
    library = db.execute(
        select(Library).where(Library.token == token).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if library is None:
        raise TokenNotFoundError()
    return library


def is_expired(library: Library, now: datetime | None = None) -> bool:
    """Whether the library's token grant is past its expiry.

    A library without a token or without an expiry has no valid grant and
    counts as expired.
    """
    if library.token is None or library.token_expires_on is None:
        return True
    now = now or datetime.now(UTC)
    return library.token_expires_on <= now


def redeem_token(db: Session, token: UUID, now: datetime | None = None) -> Library:
    """Resolve a token and check it is still valid.

    Raises:
        TokenNotFoundError: Unknown (or superseded) token.
        TokenExpiredError: Token is past its expiry.
    """
    library = resolve_token(db, token)
    if is_expired(library, now):
        raise TokenExpiredError()
    return library


def validate_grant(db: Session, library_id: int, now: datetime | None = None) -> Library:
    """Re-check that a library still exists and still has a live token.

    Used between dialog steps: the owner may have deleted the library,
    revoked the token or let it lapse since the token was submitted.

    Raises:
        LibraryNotFoundError: The library no longer exists.
        TokenNotFoundError: The token was revoked.
        TokenExpiredError: The token lapsed.
    """
    library = get_library(db, library_id)
    if library.token is None:
        raise TokenNotFoundError("Library token was revoked")
    if is_expired(library, now):
        raise TokenExpiredError()
    return library


def revoke_token(db: Session, library_id: int) -> bool:
    """Clear the library's token and expiry.

    Returns:
        True if a token was cleared, False if there was none.
    """
    with transaction(db):
        result = db.execute(
            update(Library)
            .where(Library.id == library_id, Library.token.is_not(None))
            .values(token=None, token_expires_on=None)
        )
    revoked = result.rowcount > 0
    if revoked:
        logger.info("library_token_revoked", library_id=library_id)
    return revoked
