"""User-facing commands and messages."""

from datetime import timedelta

from warmlight.services import sources as source_fields

# Commands
COMMAND_START = "/start"
COMMAND_HELP = "/help"
COMMAND_CANCEL = "/cancel"
COMMAND_SET_ACTIVE_SOURCE = "/setactivesource"
COMMAND_DEACTIVATE_SOURCE = "/deactivatesource"
COMMAND_GET_SOURCES = "/getsources"
COMMAND_GET_LIBRARY_TOKEN = "/getlibtoken"
COMMAND_SET_LIBRARY_TOKEN = "/setlibtoken"
COMMAND_REVOKE_LIBRARY_TOKEN = "/revoketoken"
COMMAND_SEARCH = "/search"

# Dialog answers
CANCEL_ANSWER = "cancel"
CONFIRM_LIBRARY_CHANGE_ANSWER = "Yes, I want to use this library."

# Common
INTERNAL_SERVER_ERROR = "❌ Something unexpected happened. Please try again later."
STORE_UNAVAILABLE = "❌ The bot could not reach its database. Please try again in a moment."
OPERATION_CANCELED = "✅ Operation canceled."
NOTHING_TO_CANCEL = "There is nothing to cancel. 😊"
GOING_BACK_TO_NORMAL_MODE = (
    "❌ Something went wrong with the current operation. "
    "It was canceled and you are back in normal mode."
)
ALREADY_JOINED = "You have already started the bot. Send /help to see what it can do."
YOUR_DATA_IS_LOST = (
    "Looks like your data was lost, so you are starting with an empty library.\n"
    "Send /help to see what the bot can do."
)
QUOTE_ADDED = "✅ Quote added."
QUOTE_HAS_NO_TEXT = "Couldn't find any text to save as a quote. 🤔"
STALE_BUTTON = "This button is no longer valid."
UNKNOWN_BUTTON = "Unknown action."

HELP = f"""Warmlight Bot
Save a quote by sending it in this format:
We should forget about small efficiencies, say about 97% of the time: premature optimization is the root of all evil.
sources: Donald Knuth
#programming #optimization

Commands:
{COMMAND_GET_SOURCES} [name] [@kind] lists your sources; each has Info and Edit buttons.
{COMMAND_SET_ACTIVE_SOURCE} [name], [minutes] makes a source active; quotes sent without a sources line go to it.
{COMMAND_DEACTIVATE_SOURCE} stops using the active source.
{COMMAND_SEARCH} [words] finds quotes containing all the words.
{COMMAND_GET_LIBRARY_TOKEN} gives the library owner a token to share the library.
{COMMAND_SET_LIBRARY_TOKEN} [token] joins the library the token belongs to.
{COMMAND_REVOKE_LIBRARY_TOKEN} invalidates the current token of your library.
{COMMAND_CANCEL} cancels the current operation."""


def welcome(first_name: str) -> str:
    name = f" {first_name}" if first_name else ""
    return f"👋 Welcome{name}!\n\n{HELP}"


# Sources
ACTIVE_SOURCE_EXPIRED = "✅ Active source expired."
NO_ACTIVE_SOURCE = "Currently you have no active source. 😊"
SOURCE_TIMEOUT_MUST_BE_POSITIVE = "Active source timeout should be greater than zero. 🧐"
ONLY_ONE_SOURCE_KIND_FILTER = "You can only filter sources by one source kind. 🧐"
SOURCE_NO_LONGER_EXISTS = "❌ Source no longer exists."
NO_SOURCES_FOUND = "No source was found. 😕"

SOURCE_KINDS_HELP = f"""You can set the source kind with '{source_fields.EDIT_KIND}'. Each kind has its own options:
book: {source_fields.EDIT_INFO_URL}, {source_fields.EDIT_AUTHOR}, {source_fields.EDIT_AUTHOR_URL}
person: {source_fields.EDIT_INFO_URL}, {source_fields.EDIT_TITLE}, {source_fields.EDIT_LIVED_IN}
article: {source_fields.EDIT_URL}, {source_fields.EDIT_AUTHOR}
unknown: no options
'{source_fields.EDIT_NAME}' renames the source. Send '{CANCEL_ANSWER}' to cancel."""

EDIT_FORMAT_EXAMPLE = f"""[option]: [value]
[option]: [value]
For example, for a book:
{source_fields.EDIT_KIND}: book
{source_fields.EDIT_INFO_URL}: https://en.wikipedia.org/wiki/Animal_Farm
{source_fields.EDIT_AUTHOR}: George Orwell
{source_fields.EDIT_AUTHOR_URL}: https://en.wikipedia.org/wiki/George_Orwell"""

MALFORMED_EDIT_SOURCE = (
    f"Couldn't understand what you mean. 🤔\nSend the changes in this format:\n"
    f"{EDIT_FORMAT_EXAMPLE}\n{SOURCE_KINDS_HELP}"
)
MALFORMED_LIVED_IN = (
    f"Malformed value for '{source_fields.EDIT_LIVED_IN}'. The correct format is:\n"
    f"{source_fields.EDIT_LIVED_IN}: 1903-1950"
)


def malformed_set_active_source(default_timeout_mins: int) -> str:
    return (
        "Couldn't understand what you mean. 🤔\n"
        f"Use it like this:\n{COMMAND_SET_ACTIVE_SOURCE} Animal Farm, 80\n"
        "This makes 'Animal Farm' active for 80 minutes. Without a time it stays active "
        f"for {default_timeout_mins} minutes."
    )


def active_source_set(name: str, timeout_mins: int) -> str:
    return f"✅ Source '{name}' is active for {timeout_mins} minutes."


def active_source_deactivated(name: str) -> str:
    return f"✅ Source '{name}' deactivated."


def source_does_not_exist(name: str) -> str:
    return f"Source '{name}' does not exist. 🤔"


def invalid_source_kind(kind: str) -> str:
    return f"'{kind}' is not a valid source kind. 🤔\nValid source kinds are unknown, book, person, article."


def source_name_taken(name: str) -> str:
    return f"❌ A source named '{name}' already exists."


def source_info(name: str, kind: str, data: dict) -> str:
    """Render a source and its per-kind data."""
    if kind == "book":
        return (
            f"{name} (book):\n"
            f"{source_fields.EDIT_INFO_URL}: {data.get('link_to_info', '')}\n"
            f"{source_fields.EDIT_AUTHOR}: {data.get('author', '')}\n"
            f"{source_fields.EDIT_AUTHOR_URL}: {data.get('link_to_author', '')}"
        )
    if kind == "person":
        born = data.get("born_on") or ""
        died = data.get("death_on") or ""
        return (
            f"{name} (person):\n"
            f"{source_fields.EDIT_INFO_URL}: {data.get('link_to_info', '')}\n"
            f"{source_fields.EDIT_TITLE}: {data.get('title', '')}\n"
            f"{source_fields.EDIT_LIVED_IN}: {born}-{died}"
        )
    if kind == "article":
        return (
            f"{name} (article):\n"
            f"{source_fields.EDIT_URL}: {data.get('url', '')}\n"
            f"{source_fields.EDIT_AUTHOR}: {data.get('author', '')}"
        )
    return f"{name} (unknown)"


def edit_source(info: str) -> str:
    return (
        f"Current source info:\n{info}\n\nSend the changes in this format:\n"
        f"{EDIT_FORMAT_EXAMPLE}\n{SOURCE_KINDS_HELP}"
    )


def source_updated(info: str) -> str:
    return f"✅ Updated successfully. New source info:\n{info}"


def list_of_sources(entries: list[tuple[str, str]]) -> str:
    """Numbered list of (name, kind) pairs."""
    if not entries:
        return NO_SOURCES_FOUND
    lines = ["✅ Found sources:"]
    lines.extend(f"{i}. {name} - {kind}" for i, (name, kind) in enumerate(entries, start=1))
    return "\n".join(lines)


# Quotes
NO_QUOTES_FOUND = "No quote was found. 😕"
SEARCH_NEEDS_WORDS = f"Tell me what to look for, for example:\n{COMMAND_SEARCH} premature optimization"


def quote(text: str, main_source: str | None, tags: list[str] | None = None) -> str:
    message = text
    if main_source:
        message += f"\n— {main_source}"
    if tags:
        message += "\n" + " ".join(f"#{tag}" for tag in tags)
    return message


def search_results(quotes: list[tuple[str, str | None]]) -> str:
    if not quotes:
        return NO_QUOTES_FOUND
    return "\n\n".join(quote(text, main_source) for text, main_source in quotes)


# Libraries
ONLY_OWNER_CAN_SHARE = (
    "❌ Only the owner of the library can add new users (the person who created the library)."
)
NO_LIBRARY_WITH_TOKEN = "❌ Library token is not valid."
LIBRARY_TOKEN_EXPIRED = "❌ Library token is expired.\nAsk the owner for a new token."
LIBRARY_TOKEN_REVOKED = "❌ The owner revoked this library token.\nAsk the owner for a new token."
LIBRARY_NO_LONGER_EXISTS = "❌ The library you wanted to join no longer exists. Operation canceled."
ALREADY_IN_LIBRARY = "You are already a member of this library. 😊"
NO_LONGER_IN_LIBRARY = (
    "❌ You are no longer a member of the library you started from. Operation canceled."
)
LIBRARY_CHANGED = "✅ Library changed successfully."
LIBRARY_TOKEN_REVOKED_BY_OWNER = "✅ Library token revoked. Nobody can join with it anymore."
NO_LIBRARY_TOKEN = "Your library has no active token. 😊"
MERGE_OR_DELETE = """Do you want to merge your current data or delete it?
Merge: your current quotes, sources and tags are added to the library you are joining.
Delete: your current data is PERMANENTLY deleted."""
MERGE_BUTTON = "Merge"
DELETE_BUTTON = "Delete"
CHOOSE_MERGE_OR_DELETE = f"Choose one of the buttons above, or send '{CANCEL_ANSWER}' to cancel."
UNKNOWN_LIBRARY_CONFIRMATION = (
    "Couldn't understand what you mean.\n"
    f"Valid answers are either '{CONFIRM_LIBRARY_CHANGE_ANSWER}' or '{CANCEL_ANSWER}'."
)
MALFORMED_LIBRARY_TOKEN = (
    f"Couldn't understand what you mean. 🤔\nUse it like this:\n{COMMAND_SET_LIBRARY_TOKEN} [libraryToken]"
)


def confirm_library_change(mode: str) -> str:
    effect = (
        "your current data will be added to the new library"
        if mode == "merge"
        else "your current data will be PERMANENTLY deleted"
    )
    return (
        f"Are you sure you want to join this library? {effect.capitalize()}.\n"
        f"This action is IRREVERSIBLE. If yes, send '{CONFIRM_LIBRARY_CHANGE_ANSWER}'. "
        f"Send '{CANCEL_ANSWER}' to cancel."
    )


def format_lifetime(lifetime: timedelta) -> str:
    """Human readable duration: '30 minutes', '2 hours', '1 hour 30 minutes'."""
    total_minutes = int(lifetime.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes or not parts:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return " ".join(parts)


def your_library_token(token: str, lifetime: timedelta) -> str:
    return (
        f"✅ Your library token is '{token}'. It will expire in {format_lifetime(lifetime)}.\n"
        "Only share it with PEOPLE YOU TRUST."
    )
