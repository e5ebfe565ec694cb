"""SQLAlchemy ORM models for Warmlight.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enums are defined as Python enums and mapped to database enum types.

Tables:
    libraries: quote collections, each with an owner and an optional share token
    users: chat users; each references exactly one library
    sources / tags / quotes: library content
    quotes_tags / quotes_sources: links, scoped to the library of the quote
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Autoincrementing 64-bit ids; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class UserState(str, PyEnum):
    """Dialog states of the conversation state machine.

    States:
        normal: no multi-step operation in progress
        editing_source: waiting for a source edit message
        changing_library: token accepted, waiting for merge/delete choice
        confirming_library_change: mode chosen, waiting for the final yes/cancel
    """

    normal = "normal"
    editing_source = "editing_source"
    changing_library = "changing_library"
    confirming_library_change = "confirming_library_change"


class SourceKind(str, PyEnum):
    unknown = "unknown"
    book = "book"
    person = "person"
    article = "article"


class LibraryChangeMode(str, PyEnum):
    """How a user's current library content is handled when joining another library."""

    merge = "merge"
    delete = "delete"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Models
# =============================================================================


class Library(Base):
    """A quote collection shared by every user that references it."""

    __tablename__ = "libraries"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    # Not a foreign key: the owner row is created after the library in the same transaction
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    token: Mapped[UUID | None] = mapped_column(Uuid, unique=True, nullable=True)
    token_expires_on: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    members: Mapped[list["User"]] = relationship("User", back_populates="library")


class User(Base):
    """Chat user. The ID is the chat platform's user ID."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )
    state: Mapped[UserState] = mapped_column(
        Enum(UserState, name="user_state", values_callable=_enum_values),
        server_default=UserState.normal.value,
        nullable=False,
    )
    state_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    active_source: Mapped[str | None] = mapped_column(Text, nullable=True)
    active_source_expire: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    library: Mapped["Library"] = relationship("Library", back_populates="members")


class Source(Base):
    """Where a quote comes from (book, person, article or unknown)."""

    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[SourceKind] = mapped_column(
        Enum(SourceKind, name="source_kind", values_callable=_enum_values),
        server_default=SourceKind.unknown.value,
        nullable=False,
    )
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (UniqueConstraint("library_id", "name", name="uq_sources_library_name"),)


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (UniqueConstraint("library_id", "name", name="uq_tags_library_name"),)


class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    main_source: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )


class QuoteTag(Base):
    __tablename__ = "quotes_tags"

    quote_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("quotes.id"), primary_key=True)
    tag_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("tags.id"), primary_key=True)
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )


class QuoteSource(Base):
    __tablename__ = "quotes_sources"

    quote_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("quotes.id"), primary_key=True)
    source_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("sources.id"), primary_key=True)
    library_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("libraries.id"), nullable=False, index=True
    )
