"""Command and quote handlers for users in the normal state."""

from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from warmlight.bot import keyboards, strings
from warmlight.bot.reaction import Reaction
from warmlight.config import Settings
from warmlight.db.models import User
from warmlight.errors import ErrorCode, MalformedError, SourceNotFoundError
from warmlight.logging import get_logger
from warmlight.services import dialog
from warmlight.services.quotes import create_quote_with_data, parse_quote, search_quotes
from warmlight.services.sources import (
    clear_expired_active_source,
    deactivate_source,
    get_source_by_id,
    parse_source_filter,
    query_sources,
    set_active_source,
)
from warmlight.services.tokens import get_library, issue_token, revoke_token

logger = get_logger(__name__)


def parse_command(text: str) -> tuple[str, str] | None:
    """Split "/command@bot args" into ("/command", "args").

    Returns None if the text is not a command.
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    head, _, args = stripped.partition(" ")
    command = head.split("@", 1)[0].lower()
    return command, args.strip()


class CommandContext:
    """Everything a command handler needs for one message."""

    def __init__(
        self,
        db: Session,
        user: User,
        chat_id: int,
        settings: Settings,
        reply_to_message_id: int | None = None,
        now: datetime | None = None,
    ):
        self.db = db
        self.user = user
        self.chat_id = chat_id
        self.settings = settings
        self.reply_to_message_id = reply_to_message_id
        self.now = now or datetime.now(UTC)

    def reply(self, text: str, reply_markup: dict | None = None) -> Reaction:
        return Reaction.text(self.chat_id, text, self.reply_to_message_id, reply_markup)


def handle_start(ctx: CommandContext, args: str) -> Reaction:
    return ctx.reply(strings.ALREADY_JOINED)


def handle_help(ctx: CommandContext, args: str) -> Reaction:
    return ctx.reply(strings.HELP)


def handle_cancel(ctx: CommandContext, args: str) -> Reaction:
    return ctx.reply(strings.NOTHING_TO_CANCEL)


def handle_set_active_source(ctx: CommandContext, args: str) -> Reaction:
    """`/setactivesource <name>[, minutes]`"""
    default_mins = ctx.settings.default_active_source_timeout_mins
    parts = [part.strip() for part in args.split(",")]
    if not parts[0] or len(parts) > 2:
        return ctx.reply(strings.malformed_set_active_source(default_mins))

    name = parts[0]
    timeout_mins = default_mins
    if len(parts) == 2:
        try:
            timeout_mins = int(parts[1])
        except ValueError:
            return ctx.reply(strings.malformed_set_active_source(default_mins))
        if timeout_mins <= 0:
            return ctx.reply(strings.SOURCE_TIMEOUT_MUST_BE_POSITIVE)

    try:
        set_active_source(ctx.db, ctx.user.id, ctx.user.library_id, name, timeout_mins, ctx.now)
    except SourceNotFoundError:
        return ctx.reply(strings.source_does_not_exist(name))
    return ctx.reply(strings.active_source_set(name, timeout_mins))


def handle_deactivate_source(ctx: CommandContext, args: str) -> Reaction:
    name = deactivate_source(ctx.db, ctx.user.id)
    if name is None:
        return ctx.reply(strings.NO_ACTIVE_SOURCE)
    return ctx.reply(strings.active_source_deactivated(name))


def handle_get_sources(ctx: CommandContext, args: str) -> Reaction:
    """`/getsources [text] [@kind]` lists up to ten sources with Info/Edit buttons."""
    try:
        source_filter = parse_source_filter(args)
    except MalformedError as exc:
        if exc.code == ErrorCode.E_SOURCE_FILTER_MALFORMED:
            return ctx.reply(strings.ONLY_ONE_SOURCE_KIND_FILTER)
        bad_kind = next((word[1:] for word in args.split() if word.startswith("@")), "")
        return ctx.reply(strings.invalid_source_kind(bad_kind))

    sources = query_sources(ctx.db, ctx.user.library_id, source_filter)
    return ctx.reply(
        strings.list_of_sources([(source.name, source.kind.value) for source in sources]),
        reply_markup=keyboards.sources_keyboard(sources),
    )


def handle_get_library_token(ctx: CommandContext, args: str) -> Reaction:
    lifetime = ctx.settings.library_token_lifetime
    grant = issue_token(ctx.db, ctx.user.id, lifetime, ctx.now)
    if grant is None:
        return ctx.reply(strings.ONLY_OWNER_CAN_SHARE)
    return ctx.reply(strings.your_library_token(str(grant.token), lifetime))


def handle_set_library_token(ctx: CommandContext, args: str) -> Reaction:
    if not args:
        return ctx.reply(strings.MALFORMED_LIBRARY_TOKEN)
    return dialog.submit_library_token(
        ctx.db, ctx.user, args, ctx.chat_id, ctx.reply_to_message_id, ctx.now
    )


def handle_revoke_token(ctx: CommandContext, args: str) -> Reaction:
    library = get_library(ctx.db, ctx.user.library_id)
    if library.owner_id != ctx.user.id:
        return ctx.reply(strings.ONLY_OWNER_CAN_SHARE)
    if not revoke_token(ctx.db, library.id):
        return ctx.reply(strings.NO_LIBRARY_TOKEN)
    return ctx.reply(strings.LIBRARY_TOKEN_REVOKED_BY_OWNER)


def handle_search(ctx: CommandContext, args: str) -> Reaction:
    if not args:
        return ctx.reply(strings.SEARCH_NEEDS_WORDS)
    quotes = search_quotes(ctx.db, ctx.user.library_id, args)
    return ctx.reply(strings.search_results([(quote.text, quote.main_source) for quote in quotes]))


def handle_quote(ctx: CommandContext, text: str) -> Reaction:
    """Save a quote.

    Without a `sources:` line the user's active source is used while it is
    live; an expired one is cleared and not applied.
    """
    try:
        parsed = parse_quote(text)
    except MalformedError:
        return ctx.reply(strings.QUOTE_HAS_NO_TEXT)

    reaction = Reaction()
    user = ctx.user
    if not parsed.sources and user.active_source:
        expire = user.active_source_expire
        if expire is not None and expire < ctx.now:
            if clear_expired_active_source(ctx.db, user.id, ctx.now):
                reaction.add(ctx.chat_id, strings.ACTIVE_SOURCE_EXPIRED)
        else:
            parsed = parsed.model_copy(
                update={"main_source": user.active_source, "sources": [user.active_source]}
            )

    create_quote_with_data(ctx.db, user.library_id, parsed)
    return reaction.add(ctx.chat_id, strings.QUOTE_ADDED, ctx.reply_to_message_id)


def handle_source_info(ctx: CommandContext, source_id: int) -> Reaction:
    try:
        source = get_source_by_id(ctx.db, ctx.user.library_id, source_id)
    except SourceNotFoundError:
        return Reaction.text(ctx.chat_id, strings.SOURCE_NO_LONGER_EXISTS)
    return Reaction.text(ctx.chat_id, dialog.describe_source(source))


COMMANDS: dict[str, Callable[[CommandContext, str], Reaction]] = {
    strings.COMMAND_START: handle_start,
    strings.COMMAND_HELP: handle_help,
    strings.COMMAND_CANCEL: handle_cancel,
    strings.COMMAND_SET_ACTIVE_SOURCE: handle_set_active_source,
    strings.COMMAND_DEACTIVATE_SOURCE: handle_deactivate_source,
    strings.COMMAND_GET_SOURCES: handle_get_sources,
    strings.COMMAND_GET_LIBRARY_TOKEN: handle_get_library_token,
    strings.COMMAND_SET_LIBRARY_TOKEN: handle_set_library_token,
    strings.COMMAND_REVOKE_LIBRARY_TOKEN: handle_revoke_token,
    strings.COMMAND_SEARCH: handle_search,
}


def handle_normal_message(ctx: CommandContext, text: str) -> Reaction:
    """Route by command; unknown commands and plain text are saved as quotes."""
    parsed = parse_command(text)
    if parsed is not None:
        command, args = parsed
        handler = COMMANDS.get(command)
        if handler is not None:
            logger.info("command_received", command=command, user_id=ctx.user.id)
            return handler(ctx, args)
    return handle_quote(ctx, text)
