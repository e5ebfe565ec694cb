"""User bootstrap and dialog state persistence.

Provides race-safe user + library creation on first contact, and the single
atomic update used for every dialog state write.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warmlight.db.models import Library, User, UserState
from warmlight.db.session import transaction
from warmlight.errors import ErrorCode, NotFoundError
from warmlight.logging import get_logger
from warmlight.schemas.state import DialogState, NormalState, decode_state, encode_state

logger = get_logger(__name__)


def get_user(db: Session, user_id: int) -> User:
    """Load a user, refreshing any copy already in the session.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(ErrorCode.E_USER_NOT_FOUND, f"User {user_id} not found")
    return user


def get_or_create_user(
    db: Session, user_id: int, chat_id: int, first_name: str = ""
) -> tuple[User, bool]:
    """Return the user, creating it together with its own library if missing.

    The library and the user are inserted in one transaction, so a user never
    exists without a library. A concurrent first contact from the same user
    loses the race on the users primary key; its transaction (library
    included) is rolled back and the winner's row is returned.

    Args:
        db: Database session.
        user_id: Chat platform user ID.
        chat_id: Chat to reply to.
        first_name: Display name.

    Returns:
        Tuple of (user, created).
    """
    existing = db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if existing is not None:
        return existing, False

    try:
        with transaction(db):
            library = Library(owner_id=user_id)
            db.add(library)
            db.flush()

            user = User(
                id=user_id,
                chat_id=chat_id,
                first_name=first_name,
                library_id=library.id,
                state=UserState.normal,
            )
            db.add(user)
            db.flush()
    except IntegrityError:
        # Lost race: another request created the user first
        db.rollback()
        logger.info("user_create_race_lost", user_id=user_id)
        return get_user(db, user_id), False

    logger.info("user_created", user_id=user_id, library_id=library.id)
    return user, True


def get_dialog_state(user: User) -> DialogState:
    """Decode the user's persisted dialog state.

    Raises:
        MalformedError: If the state payload does not match the state tag.
    """
    return decode_state(user.state, user.state_data)


def set_user_state(db: Session, user_id: int, dialog_state: DialogState) -> None:
    """Persist a dialog state with one atomic update of the user row."""
    state, state_data = encode_state(dialog_state)
    with transaction(db):
        result = db.execute(
            update(User).where(User.id == user_id).values(state=state, state_data=state_data)
        )
        if result.rowcount == 0:
            raise NotFoundError(ErrorCode.E_USER_NOT_FOUND, f"User {user_id} not found")
    logger.info("user_state_changed", user_id=user_id, state=state.value)


def reset_user_state(db: Session, user_id: int) -> None:
    set_user_state(db, user_id, NormalState())
