"""Conversation state machine transitions.

Each transition reads the user's decoded dialog state, does its store work,
writes the next state with one atomic update and returns the Reaction to
send. Recoverable errors are turned into replies here; StoreFailureError and
anything unexpected propagate to the dispatcher.

States:
- normal: commands and quotes
- editing_source: waiting for `key: value` lines for one source
- changing_library: token accepted, waiting for the merge/delete button
- confirming_library_change: mode chosen, waiting for the yes answer
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from warmlight.bot import keyboards, strings
from warmlight.bot.reaction import Reaction
from warmlight.db.models import LibraryChangeMode, Source, User
from warmlight.errors import (
    ErrorCode,
    LibraryNotFoundError,
    MalformedError,
    SourceNotFoundError,
    StaleMigrationError,
    TokenExpiredError,
    TokenNotFoundError,
)
from warmlight.logging import get_logger
from warmlight.schemas.state import (
    ChangingLibraryState,
    ConfirmingLibraryChangeState,
    EditingSourceState,
    NormalState,
)
from warmlight.services.migration import migrate_library
from warmlight.services.sources import (
    EDIT_KIND,
    EDIT_NAME,
    apply_source_edit,
    get_source_by_id,
    parse_edit_message,
    source_data_for_display,
)
from warmlight.services.tokens import get_library, redeem_token, revoke_token, validate_grant
from warmlight.services.users import get_dialog_state, reset_user_state, set_user_state

logger = get_logger(__name__)

CANCEL_KEYWORDS = frozenset({strings.CANCEL_ANSWER, strings.COMMAND_CANCEL})


# =============================================================================
# Helper Functions
# =============================================================================


def is_cancel(text: str) -> bool:
    return text.strip().lower() in CANCEL_KEYWORDS


def describe_source(source: Source) -> str:
    """Render a source with its per-kind data."""
    return strings.source_info(source.name, source.kind.value, source_data_for_display(source))


def _reset_with(db: Session, user: User, chat_id: int, text: str, **kwargs) -> Reaction:
    reset_user_state(db, user.id)
    return Reaction.text(chat_id, text, **kwargs)


# =============================================================================
# Library change
# =============================================================================


def submit_library_token(
    db: Session,
    user: User,
    token_text: str,
    chat_id: int,
    reply_to_message_id: int | None = None,
    now: datetime | None = None,
) -> Reaction:
    """Normal -> ChangingLibrary on a valid token.

    Every failure leaves the state untouched and explains what went wrong.
    """
    try:
        token = UUID(token_text.strip())
    except ValueError:
        return Reaction.text(chat_id, strings.MALFORMED_LIBRARY_TOKEN, reply_to_message_id)

    try:
        library = redeem_token(db, token, now)
    except TokenNotFoundError:
        return Reaction.text(chat_id, strings.NO_LIBRARY_WITH_TOKEN, reply_to_message_id)
    except TokenExpiredError:
        return Reaction.text(chat_id, strings.LIBRARY_TOKEN_EXPIRED, reply_to_message_id)

    if library.id == user.library_id:
        return Reaction.text(chat_id, strings.ALREADY_IN_LIBRARY, reply_to_message_id)

    set_user_state(db, user.id, ChangingLibraryState(library_id=library.id))
    logger.info("library_token_accepted", user_id=user.id, target_library_id=library.id)
    return Reaction.text(
        chat_id,
        strings.MERGE_OR_DELETE,
        reply_to_message_id,
        reply_markup=keyboards.library_mode_keyboard(),
    )


def remind_changing_library(chat_id: int) -> Reaction:
    """Repeat the merge/delete buttons; the state is kept."""
    return Reaction.text(
        chat_id, strings.CHOOSE_MERGE_OR_DELETE, reply_markup=keyboards.library_mode_keyboard()
    )


def choose_library_change_mode(
    db: Session,
    user: User,
    mode: LibraryChangeMode,
    chat_id: int,
    now: datetime | None = None,
) -> Reaction:
    """ChangingLibrary -> ConfirmingLibraryChange after a merge/delete button.

    The target grant is re-validated: the owner may have deleted the library,
    revoked the token or let it lapse since it was submitted.
    """
    try:
        state = get_dialog_state(user)
    except MalformedError:
        logger.warning("dialog_state_malformed", user_id=user.id, state=user.state.value)
        return _reset_with(db, user, chat_id, strings.GOING_BACK_TO_NORMAL_MODE)

    if not isinstance(state, ChangingLibraryState):
        return Reaction(callback_text=strings.STALE_BUTTON)

    try:
        validate_grant(db, state.library_id, now)
    except LibraryNotFoundError:
        return _reset_with(db, user, chat_id, strings.LIBRARY_NO_LONGER_EXISTS)
    except TokenNotFoundError:
        return _reset_with(db, user, chat_id, strings.LIBRARY_TOKEN_REVOKED)
    except TokenExpiredError:
        return _reset_with(db, user, chat_id, strings.LIBRARY_TOKEN_EXPIRED)

    set_user_state(
        db, user.id, ConfirmingLibraryChangeState(library_id=state.library_id, mode=mode)
    )
    return Reaction.text(
        chat_id,
        strings.confirm_library_change(mode.value),
        reply_markup=keyboards.confirm_library_change_keyboard(),
    )


def confirm_library_change(
    db: Session,
    user: User,
    state: ConfirmingLibraryChangeState,
    answer: str,
    chat_id: int,
    statement_timeout_ms: int | None = None,
) -> Reaction:
    """ConfirmingLibraryChange -> Normal.

    The yes answer checks the target still exists and runs the migration with
    the stored mode. Any other answer gets the list of valid answers and the
    state is kept. After a successful join the target's token is cleared.
    """
    if is_cancel(answer):
        return cancel_dialog(db, user, chat_id)
    if answer.strip() != strings.CONFIRM_LIBRARY_CHANGE_ANSWER:
        return Reaction.text(
            chat_id,
            strings.UNKNOWN_LIBRARY_CONFIRMATION,
            reply_markup=keyboards.confirm_library_change_keyboard(),
        )

    remove = {"reply_markup": keyboards.REMOVE_KEYBOARD}
    try:
        get_library(db, state.library_id)
        migrate_library(
            db,
            user.id,
            user.library_id,
            state.library_id,
            state.mode,
            statement_timeout_ms=statement_timeout_ms,
        )
    except LibraryNotFoundError:
        return _reset_with(db, user, chat_id, strings.LIBRARY_NO_LONGER_EXISTS, **remove)
    except StaleMigrationError:
        logger.info("library_migration_stale", user_id=user.id, target_library_id=state.library_id)
        return _reset_with(db, user, chat_id, strings.NO_LONGER_IN_LIBRARY, **remove)
    except MalformedError as exc:
        if exc.code != ErrorCode.E_SAME_LIBRARY:
            raise
        return _reset_with(db, user, chat_id, strings.ALREADY_IN_LIBRARY, **remove)

    revoke_token(db, state.library_id)
    return Reaction.text(chat_id, strings.LIBRARY_CHANGED, **remove)


def cancel_dialog(db: Session, user: User, chat_id: int) -> Reaction:
    """Any state -> Normal, without touching data."""
    reset_user_state(db, user.id)
    logger.info("dialog_canceled", user_id=user.id, state=user.state.value)
    return Reaction.text(
        chat_id, strings.OPERATION_CANCELED, reply_markup=keyboards.REMOVE_KEYBOARD
    )


# =============================================================================
# Source editing
# =============================================================================


def start_source_edit(db: Session, user: User, source_id: int, chat_id: int) -> Reaction:
    """Normal -> EditingSource after an Edit button."""
    try:
        source = get_source_by_id(db, user.library_id, source_id)
    except SourceNotFoundError:
        return Reaction.text(chat_id, strings.SOURCE_NO_LONGER_EXISTS)

    set_user_state(db, user.id, EditingSourceState(source_id=source.id))
    return Reaction.text(chat_id, strings.edit_source(describe_source(source)))


def handle_editing_source(
    db: Session,
    user: User,
    state: EditingSourceState,
    text: str,
    chat_id: int,
    reply_to_message_id: int | None = None,
) -> Reaction:
    """EditingSource -> Normal once the edit is applied.

    Input mistakes keep the state so the user can resend the edit.
    """
    edits: dict[str, str] = {}
    try:
        edits = parse_edit_message(text)
        source = apply_source_edit(db, user.library_id, state.source_id, edits)
    except SourceNotFoundError:
        return _reset_with(db, user, chat_id, strings.SOURCE_NO_LONGER_EXISTS)
    except MalformedError as exc:
        if exc.code == ErrorCode.E_INVALID_SOURCE_KIND:
            message = strings.invalid_source_kind(edits.get(EDIT_KIND, ""))
        elif exc.code == ErrorCode.E_LIVED_IN_MALFORMED:
            message = strings.MALFORMED_LIVED_IN
        elif exc.code == ErrorCode.E_SOURCE_NAME_TAKEN:
            message = strings.source_name_taken(edits.get(EDIT_NAME, ""))
        else:
            message = strings.MALFORMED_EDIT_SOURCE
        return Reaction.text(chat_id, message, reply_to_message_id)

    reset_user_state(db, user.id)
    return Reaction.text(
        chat_id, strings.source_updated(describe_source(source)), reply_to_message_id
    )


# =============================================================================
# Routing
# =============================================================================


def handle_state_message(
    db: Session,
    user: User,
    text: str,
    chat_id: int,
    reply_to_message_id: int | None = None,
    statement_timeout_ms: int | None = None,
) -> Reaction | None:
    """Route a text message by the user's dialog state.

    Returns:
        The reaction, or None when the user is in the normal state and the
        message should be handled as a command or quote.
    """
    try:
        state = get_dialog_state(user)
    except MalformedError:
        logger.warning("dialog_state_malformed", user_id=user.id, state=user.state.value)
        return _reset_with(db, user, chat_id, strings.GOING_BACK_TO_NORMAL_MODE)

    if isinstance(state, NormalState):
        return None
    if is_cancel(text):
        return cancel_dialog(db, user, chat_id)
    if isinstance(state, EditingSourceState):
        return handle_editing_source(db, user, state, text, chat_id, reply_to_message_id)
    if isinstance(state, ChangingLibraryState):
        return remind_changing_library(chat_id)
    return confirm_library_change(
        db, user, state, text, chat_id, statement_timeout_ms=statement_timeout_ms
    )
