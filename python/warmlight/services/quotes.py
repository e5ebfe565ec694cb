"""Quote parsing, creation and search."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from warmlight.db.models import Quote, QuoteSource, QuoteTag, Tag
from warmlight.db.session import transaction
from warmlight.errors import ErrorCode, MalformedError
from warmlight.logging import get_logger
from warmlight.schemas.source import ParsedQuote
from warmlight.services.sources import get_or_create_source

logger = get_logger(__name__)

SOURCES_PREFIX = "sources:"
DEFAULT_SEARCH_LIMIT = 50


def _append_unique(items: list[str], value: str) -> None:
    if value and value not in items:
        items.append(value)


def parse_quote(text: str) -> ParsedQuote:
    """Parse a quote message.

    Format:
        <quote text>
        sources: Main Source, Other Source
        #tag1 #tag2

    Raises:
        MalformedError: If the message has no text.
    """
    quote_text = ""
    sources: list[str] = []
    tags: list[str] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if not quote_text:
            quote_text = line
            continue

        if line.lower().startswith(SOURCES_PREFIX):
            for name in line[len(SOURCES_PREFIX) :].split(","):
                _append_unique(sources, name.strip())

        for word in line.split():
            if word.startswith("#"):
                _append_unique(tags, word[1:])

    if not quote_text:
        raise MalformedError(ErrorCode.E_QUOTE_EMPTY, "Quote has no text")

    return ParsedQuote(
        text=quote_text,
        main_source=sources[0] if sources else None,
        sources=sources,
        tags=tags,
    )


def _get_or_create_tag(db: Session, library_id: int, name: str) -> Tag:
    tag = db.execute(
        select(Tag).where(Tag.library_id == library_id, Tag.name == name)
    ).scalar_one_or_none()
    if tag is None:
        tag = Tag(library_id=library_id, name=name)
        db.add(tag)
        db.flush()
    return tag


def create_quote_with_data(db: Session, library_id: int, parsed: ParsedQuote) -> Quote:
    """Store a quote with its tags and sources in one transaction.

    Missing tags and sources are created in the library; every link row
    carries the library ID of the quote.
    """
    with transaction(db):
        quote = Quote(library_id=library_id, text=parsed.text, main_source=parsed.main_source)
        db.add(quote)
        db.flush()

        for tag_name in parsed.tags:
            tag = _get_or_create_tag(db, library_id, tag_name)
            db.add(QuoteTag(quote_id=quote.id, tag_id=tag.id, library_id=library_id))

        for source_name in parsed.sources:
            source = get_or_create_source(db, library_id, source_name)
            db.add(QuoteSource(quote_id=quote.id, source_id=source.id, library_id=library_id))

    logger.info(
        "quote_created",
        quote_id=quote.id,
        library_id=library_id,
        tags=len(parsed.tags),
        sources=len(parsed.sources),
    )
    return quote


def search_quotes(
    db: Session, library_id: int, query: str, limit: int = DEFAULT_SEARCH_LIMIT
) -> list[Quote]:
    """Find quotes in a library containing every word of `query`.

    Matching is case-insensitive, newest first. No ranking.
    """
    stmt = select(Quote).where(Quote.library_id == library_id)
    for word in query.split():
        stmt = stmt.where(func.lower(Quote.text).contains(word.lower(), autoescape=True))
    return list(db.scalars(stmt.order_by(Quote.id.desc()).limit(limit)))
