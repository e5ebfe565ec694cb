"""Source service layer.

Sources are scoped to a library and unique by name within it. A user may
mark one source as "active" for a limited time; quotes sent without a
`sources:` line are attributed to it. Active sources are cleared by:
- the periodic sweep (deactivate_expired_sources),
- /deactivatesource (deactivate_source),
- a lazy check when a quote arrives (clear_expired_active_source).
Every path is a conditional update, so clearing twice is a no-op.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warmlight.db.models import Source, SourceKind, User
from warmlight.db.session import transaction
from warmlight.errors import ErrorCode, MalformedError, SourceNotFoundError
from warmlight.logging import get_logger
from warmlight.schemas.library import ExpiredSourceUser
from warmlight.schemas.source import SourceFilter, source_data_model

logger = get_logger(__name__)

DEFAULT_SOURCES_LIMIT = 10

# Edit message keys
EDIT_NAME = "name"
EDIT_KIND = "kind"
EDIT_AUTHOR = "author"
EDIT_INFO_URL = "info url"
EDIT_AUTHOR_URL = "author url"
EDIT_TITLE = "title"
EDIT_LIVED_IN = "lived in"
EDIT_URL = "url"

# Edit key -> data field, per kind
_EDIT_FIELDS: dict[SourceKind, dict[str, str]] = {
    SourceKind.book: {
        EDIT_INFO_URL: "link_to_info",
        EDIT_AUTHOR: "author",
        EDIT_AUTHOR_URL: "link_to_author",
    },
    SourceKind.person: {
        EDIT_INFO_URL: "link_to_info",
        EDIT_TITLE: "title",
    },
    SourceKind.article: {
        EDIT_URL: "url",
        EDIT_AUTHOR: "author",
    },
}


def get_source(db: Session, library_id: int, name: str) -> Source:
    """Get a source by name within a library.

    Raises:
        SourceNotFoundError: If no such source exists.
    """
    source = db.execute(
        select(Source)
        .where(Source.library_id == library_id, Source.name == name)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if source is None:
        raise SourceNotFoundError(f"Source '{name}' does not exist")
    return source


def get_source_by_id(db: Session, library_id: int, source_id: int) -> Source:
    """Get a source by ID, only if it belongs to the library.

    Raises:
        SourceNotFoundError: If no such source exists in the library.
    """
    source = db.execute(
        select(Source)
        .where(Source.library_id == library_id, Source.id == source_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if source is None:
        raise SourceNotFoundError()
    return source


def get_or_create_source(db: Session, library_id: int, name: str) -> Source:
    """Return the named source, adding it to the session if missing.

    Must be called inside a transaction; the new row is flushed, not committed.
    """
    source = db.execute(
        select(Source).where(Source.library_id == library_id, Source.name == name)
    ).scalar_one_or_none()
    if source is None:
        source = Source(library_id=library_id, name=name, kind=SourceKind.unknown)
        db.add(source)
        db.flush()
    return source


def parse_source_filter(text: str) -> SourceFilter:
    """Parse `/getsources` arguments.

    Words starting with "@" select a source kind (at most one); the
    remaining words are a name fragment.

    Raises:
        MalformedError: More than one kind filter, or an unknown kind.
    """
    words: list[str] = []
    kind: SourceKind | None = None
    for word in text.split():
        if not word.startswith("@"):
            words.append(word)
            continue
        if kind is not None:
            raise MalformedError(
                ErrorCode.E_SOURCE_FILTER_MALFORMED, "Only one source kind filter is allowed"
            )
        kind = parse_source_kind(word[1:])
    return SourceFilter(text=" ".join(words), kind=kind)


def parse_source_kind(value: str) -> SourceKind:
    """Raises MalformedError for anything that is not a source kind."""
    try:
        return SourceKind(value.strip().lower())
    except ValueError:
        raise MalformedError(
            ErrorCode.E_INVALID_SOURCE_KIND, f"'{value}' is not a valid source kind"
        ) from None


def query_sources(
    db: Session,
    library_id: int,
    source_filter: SourceFilter | None = None,
    limit: int = DEFAULT_SOURCES_LIMIT,
) -> list[Source]:
    """List sources of a library, optionally filtered by name fragment and kind.

    Name matching is a case-insensitive substring match. Results are ordered
    by ID and capped at `limit`.
    """
    stmt = select(Source).where(Source.library_id == library_id)
    if source_filter is not None:
        if source_filter.text:
            stmt = stmt.where(
                func.lower(Source.name).contains(source_filter.text.lower(), autoescape=True)
            )
        if source_filter.kind is not None:
            stmt = stmt.where(Source.kind == source_filter.kind)
    return list(db.scalars(stmt.order_by(Source.id).limit(limit)))


def parse_edit_message(text: str) -> dict[str, str]:
    """Split an edit message into `key: value` pairs.

    Keys are lower-cased; empty lines are skipped.

    Raises:
        MalformedError: If a non-empty line has no colon.
    """
    edits: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise MalformedError(ErrorCode.E_SOURCE_EDIT_MALFORMED, "Edit line without ':'")
        edits[key.strip().lower()] = value.strip()
    return edits


def _parse_lived_in(value: str) -> tuple[int, int]:
    born, sep, died = value.partition("-")
    if not sep:
        raise MalformedError(ErrorCode.E_LIVED_IN_MALFORMED, "Expected 'lived in: YYYY-YYYY'")
    try:
        return int(born.strip()), int(died.strip())
    except ValueError:
        raise MalformedError(
            ErrorCode.E_LIVED_IN_MALFORMED, "Expected 'lived in: YYYY-YYYY'"
        ) from None


def build_source_data(
    current_kind: SourceKind, current_data: dict | None, new_kind: SourceKind, edits: dict[str, str]
) -> dict | None:
    """Compute the new `sources.data` for an edit.

    When the kind is unchanged, the existing data is the starting point; a
    kind change starts from empty data. Unknown sources carry no data.
    """
    model = source_data_model(new_kind)
    if model is None:
        return None

    base = current_data if (current_kind == new_kind and current_data) else {}
    data = model.model_validate(base).model_dump()

    for key, field in _EDIT_FIELDS[new_kind].items():
        if key in edits:
            data[field] = edits[key]

    if new_kind == SourceKind.person and EDIT_LIVED_IN in edits:
        data["born_on"], data["death_on"] = _parse_lived_in(edits[EDIT_LIVED_IN])

    return model.model_validate(data).model_dump(mode="json")


def apply_source_edit(
    db: Session, library_id: int, source_id: int, edits: dict[str, str]
) -> Source:
    """Apply parsed edits (name, kind and per-kind fields) to a source.

    Raises:
        SourceNotFoundError: The source no longer exists in the library.
        MalformedError: Invalid kind, malformed "lived in", or the new name is taken.
    """
    with transaction(db):
        source = get_source_by_id(db, library_id, source_id)
        new_kind = parse_source_kind(edits[EDIT_KIND]) if EDIT_KIND in edits else source.kind
        new_data = build_source_data(source.kind, source.data, new_kind, edits)
        values: dict = {"kind": new_kind, "data": new_data}
        if edits.get(EDIT_NAME):
            values["name"] = edits[EDIT_NAME]

        try:
            db.execute(update(Source).where(Source.id == source_id).values(**values))
        except IntegrityError:
            raise MalformedError(
                ErrorCode.E_SOURCE_NAME_TAKEN, f"Source '{values.get('name')}' already exists"
            ) from None

    logger.info("source_edited", source_id=source_id, kind=new_kind.value)
    return get_source_by_id(db, library_id, source_id)


def set_active_source(
    db: Session,
    user_id: int,
    library_id: int,
    name: str,
    timeout_mins: int,
    now: datetime | None = None,
) -> datetime:
    """Make an existing source the user's active source for `timeout_mins`.

    Returns:
        The expiry time.

    Raises:
        SourceNotFoundError: No source with that name in the library.
        MalformedError: Timeout is not positive.
    """
    if timeout_mins <= 0:
        raise MalformedError(ErrorCode.E_INVALID_REQUEST, "Timeout must be greater than zero")
    now = now or datetime.now(UTC)
    expires = now + timedelta(minutes=timeout_mins)

    with transaction(db):
        get_source(db, library_id, name)
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(active_source=name, active_source_expire=expires)
        )

    logger.info("active_source_set", user_id=user_id, timeout_mins=timeout_mins)
    return expires


def deactivate_source(db: Session, user_id: int) -> str | None:
    """Clear the user's active source.

    Returns:
        The name that was active, or None if there was none.
    """
    with transaction(db):
        current = db.execute(
            select(User.active_source).where(User.id == user_id)
        ).scalar_one_or_none()
        if current is None:
            return None
        result = db.execute(
            update(User)
            .where(User.id == user_id, User.active_source == current)
            .values(active_source=None, active_source_expire=None)
        )

    if result.rowcount == 0:
        return None
    logger.info("active_source_deactivated", user_id=user_id)
    return current


def clear_expired_active_source(db: Session, user_id: int, now: datetime | None = None) -> bool:
    """Clear the user's active source only if it has expired.

    Returns:
        True if this call cleared it.
    """
    now = now or datetime.now(UTC)
    with transaction(db):
        result = db.execute(
            update(User)
            .where(User.id == user_id, User.active_source_expire < now)
            .values(active_source=None, active_source_expire=None)
        )
    return result.rowcount > 0


def deactivate_expired_sources(db: Session, now: datetime | None = None) -> list[ExpiredSourceUser]:
    """Clear every active source past its expiry and return the affected users.

    One UPDATE ... RETURNING statement: a user whose source is cleared
    concurrently by another path is simply not returned.
    """
    now = now or datetime.now(UTC)
    with transaction(db):
        rows = db.execute(
            update(User)
            .where(User.active_source_expire < now)
            .values(active_source=None, active_source_expire=None)
            .returning(User.id, User.chat_id, User.first_name)
        ).all()

    return [
        ExpiredSourceUser(user_id=row.id, chat_id=row.chat_id, first_name=row.first_name or "")
        for row in rows
    ]


def source_data_for_display(source: Source) -> dict:
    """Validated per-kind data of a source with defaults filled in."""
    model = source_data_model(source.kind)
    if model is None:
        return {}
    return model.model_validate(source.data or {}).model_dump()
