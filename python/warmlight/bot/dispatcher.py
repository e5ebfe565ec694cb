"""Telegram update dispatcher.

One update is handled with its own database session:
1. Ignore anything that is not a private message or callback from a human.
2. Create the sender (and their library) on first contact.
3. Route by dialog state, then by command; plain text is a quote.
4. Deliver the resulting Reaction once the store work is committed.

StoreFailureError and unexpected exceptions are logged here and turned into a
generic error reply; they never escape to the webhook.
"""

from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from warmlight.bot import strings
from warmlight.bot.handlers import CommandContext, handle_normal_message, handle_source_info
from warmlight.bot.keyboards import CallbackAction, CallbackKind
from warmlight.bot.reaction import Reaction
from warmlight.config import Settings
from warmlight.db.models import UserState
from warmlight.errors import MalformedError, NotFoundError, StoreFailureError, TransportError
from warmlight.logging import clear_update_context, get_logger, set_update_context
from warmlight.schemas.telegram import CallbackQuery, Message, Update
from warmlight.services import dialog
from warmlight.services.users import get_or_create_user, get_user
from warmlight.transport import ChatTransportBase

logger = get_logger(__name__)

PRIVATE_CHAT = "private"


class UpdateDispatcher:
    """Routes incoming updates to handlers and delivers the replies."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        transport: ChatTransportBase,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.transport = transport
        self.settings = settings

    def handle_update(self, update: Update, now: datetime | None = None) -> None:
        """Handle one update. Never raises."""
        sender = update.sender
        set_update_context(
            update.update_id,
            user_id=sender.id if sender else None,
            chat_id=update.chat_id,
        )
        try:
            if update.callback_query is not None:
                self._handle_callback(update.callback_query, now)
            elif update.message is not None:
                self._handle_message(update.message, now)
        finally:
            clear_update_context()

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def _handle_message(self, message: Message, now: datetime | None) -> None:
        sender = message.from_user
        if sender is None or sender.is_bot or message.chat.type != PRIVATE_CHAT:
            logger.debug("update_ignored", chat_type=message.chat.type)
            return
        if message.text is None:
            return

        chat_id = message.chat.id
        try:
            with self.session_factory() as db:
                reaction = self._react_to_message(db, message, now)
        except StoreFailureError as exc:
            logger.error("update_store_failure", code=exc.code.value, error=exc.message)
            reaction = Reaction.text(chat_id, strings.STORE_UNAVAILABLE)
        except Exception:
            logger.exception("update_handling_failed")
            reaction = Reaction.text(chat_id, strings.INTERNAL_SERVER_ERROR)

        self._deliver(reaction)

    def _react_to_message(self, db: Session, message: Message, now: datetime | None) -> Reaction:
        sender = message.from_user
        chat_id = message.chat.id
        text = message.text or ""

        user, created = get_or_create_user(db, sender.id, chat_id, sender.first_name)
        if created:
            if text.strip().startswith(strings.COMMAND_START):
                return Reaction.text(chat_id, strings.welcome(sender.first_name))
            return Reaction.text(chat_id, strings.YOUR_DATA_IS_LOST)

        if user.state != UserState.normal:
            reaction = dialog.handle_state_message(
                db,
                user,
                text,
                chat_id,
                message.message_id,
                statement_timeout_ms=self.settings.migration_statement_timeout_ms,
            )
            if reaction is not None:
                return reaction

        ctx = CommandContext(db, user, chat_id, self.settings, message.message_id, now)
        return handle_normal_message(ctx, text)

    # -------------------------------------------------------------------------
    # Callback queries
    # -------------------------------------------------------------------------

    def _handle_callback(self, callback: CallbackQuery, now: datetime | None) -> None:
        chat_id = callback.message.chat.id if callback.message else callback.from_user.id
        reaction = Reaction()
        try:
            with self.session_factory() as db:
                reaction = self._react_to_callback(db, callback, chat_id, now)
        except StoreFailureError as exc:
            logger.error("update_store_failure", code=exc.code.value, error=exc.message)
            reaction = Reaction.text(chat_id, strings.STORE_UNAVAILABLE)
        except Exception:
            logger.exception("update_handling_failed")
            reaction = Reaction.text(chat_id, strings.INTERNAL_SERVER_ERROR)
        finally:
            # Always stop the button spinner
            try:
                self.transport.answer_callback_query(callback.id, reaction.callback_text)
            except TransportError as exc:
                logger.warning("callback_answer_failed", error=exc.message)

        self._deliver(reaction)

    def _react_to_callback(
        self, db: Session, callback: CallbackQuery, chat_id: int, now: datetime | None
    ) -> Reaction:
        try:
            action = CallbackAction.parse(callback.data)
        except MalformedError:
            logger.warning("callback_data_invalid", data=callback.data)
            return Reaction(callback_text=strings.UNKNOWN_BUTTON)

        try:
            user = get_user(db, callback.from_user.id)
        except NotFoundError:
            return Reaction(callback_text=strings.STALE_BUTTON)

        if action.kind == CallbackKind.library_mode:
            return dialog.choose_library_change_mode(db, user, action.mode, chat_id, now)
        if action.kind == CallbackKind.source_edit:
            if user.state != UserState.normal:
                return Reaction(callback_text=strings.STALE_BUTTON)
            return dialog.start_source_edit(db, user, action.source_id, chat_id)

        ctx = CommandContext(db, user, chat_id, self.settings, now=now)
        return handle_source_info(ctx, action.source_id)

    def _deliver(self, reaction: Reaction) -> None:
        reaction.deliver(self.transport)
