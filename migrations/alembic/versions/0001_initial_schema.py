"""Initial schema - libraries, users, sources, tags, quotes and their links

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Types are portable so the same revision runs on PostgreSQL and SQLite.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

BIG_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

user_state = sa.Enum(
    "normal",
    "editing_source",
    "changing_library",
    "confirming_library_change",
    name="user_state",
)
source_kind = sa.Enum("unknown", "book", "person", "article", name="source_kind")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # libraries table
    # ==========================================================================
    op.create_table(
        "libraries",
        sa.Column("id", BIG_ID, primary_key=True, autoincrement=True),
        # Not a foreign key: the owner is inserted after the library
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("token", sa.Uuid(), nullable=True),
        sa.Column("token_expires_on", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("token", name="uq_libraries_token"),
    )

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.Column("state", user_state, nullable=False, server_default="normal"),
        sa.Column("state_data", sa.JSON(), nullable=True),
        sa.Column("active_source", sa.Text(), nullable=True),
        sa.Column("active_source_expire", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], name="fk_users_library"),
    )
    op.create_index("ix_users_library_id", "users", ["library_id"])
    # Sweep scans by expiry
    op.create_index("ix_users_active_source_expire", "users", ["active_source_expire"])

    # ==========================================================================
    # library content
    # ==========================================================================
    op.create_table(
        "sources",
        sa.Column("id", BIG_ID, primary_key=True, autoincrement=True),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("kind", source_kind, nullable=False, server_default="unknown"),
        sa.Column("data", sa.JSON(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], name="fk_sources_library"),
        sa.UniqueConstraint("library_id", "name", name="uq_sources_library_name"),
    )
    op.create_index("ix_sources_library_id", "sources", ["library_id"])

    op.create_table(
        "tags",
        sa.Column("id", BIG_ID, primary_key=True, autoincrement=True),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], name="fk_tags_library"),
        sa.UniqueConstraint("library_id", "name", name="uq_tags_library_name"),
    )
    op.create_index("ix_tags_library_id", "tags", ["library_id"])

    op.create_table(
        "quotes",
        sa.Column("id", BIG_ID, primary_key=True, autoincrement=True),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("main_source", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], name="fk_quotes_library"),
    )
    op.create_index("ix_quotes_library_id", "quotes", ["library_id"])

    # ==========================================================================
    # link tables (scoped to the library of the quote)
    # ==========================================================================
    op.create_table(
        "quotes_tags",
        sa.Column("quote_id", BIG_ID, nullable=False),
        sa.Column("tag_id", BIG_ID, nullable=False),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.PrimaryKeyConstraint("quote_id", "tag_id"),
        sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], name="fk_quotes_tags_quote"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], name="fk_quotes_tags_tag"),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], name="fk_quotes_tags_library"),
    )
    op.create_index("ix_quotes_tags_library_id", "quotes_tags", ["library_id"])

    op.create_table(
        "quotes_sources",
        sa.Column("quote_id", BIG_ID, nullable=False),
        sa.Column("source_id", BIG_ID, nullable=False),
        sa.Column("library_id", BIG_ID, nullable=False),
        sa.PrimaryKeyConstraint("quote_id", "source_id"),
        sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], name="fk_quotes_sources_quote"),
        sa.ForeignKeyConstraint(["source_id"], ["sources.id"], name="fk_quotes_sources_source"),
        sa.ForeignKeyConstraint(
            ["library_id"], ["libraries.id"], name="fk_quotes_sources_library"
        ),
    )
    op.create_index("ix_quotes_sources_library_id", "quotes_sources", ["library_id"])


def downgrade() -> None:
    op.drop_table("quotes_sources")
    op.drop_table("quotes_tags")
    op.drop_table("quotes")
    op.drop_table("tags")
    op.drop_table("sources")
    op.drop_table("users")
    op.drop_table("libraries")

    bind = op.get_bind()
    source_kind.drop(bind, checkfirst=True)
    user_state.drop(bind, checkfirst=True)
