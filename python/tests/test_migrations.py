"""Tests for database migrations.

Each test runs alembic against its own SQLite file, so the schema can be
created and dropped freely without touching the database used by other tests.
"""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from warmlight.db.models import Base

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

EXPECTED_TABLES = {
    "libraries",
    "users",
    "sources",
    "tags",
    "quotes",
    "quotes_tags",
    "quotes_sources",
}


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'migrations.db'}"


@pytest.fixture
def alembic_config(database_url) -> Config:
    config = Config(str(MIGRATIONS_DIR / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


@pytest.fixture
def migrated_engine(alembic_config, database_url):
    command.upgrade(alembic_config, "head")
    engine = create_engine(database_url)
    yield engine
    engine.dispose()


class TestUpgrade:
    def test_creates_all_tables(self, migrated_engine):
        tables = set(inspect(migrated_engine).get_table_names())
        assert EXPECTED_TABLES <= tables
        assert "alembic_version" in tables

    def test_columns_match_models(self, migrated_engine):
        inspector = inspect(migrated_engine)
        for table in Base.metadata.sorted_tables:
            migrated = {column["name"] for column in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name

    def test_library_id_indexes(self, migrated_engine):
        inspector = inspect(migrated_engine)
        for table in ("users", "sources", "tags", "quotes", "quotes_tags", "quotes_sources"):
            indexed = {tuple(ix["column_names"]) for ix in inspector.get_indexes(table)}
            assert ("library_id",) in indexed, table

    def test_source_names_unique_per_library(self, migrated_engine):
        with migrated_engine.begin() as conn:
            conn.execute(text("INSERT INTO libraries (id, owner_id) VALUES (1, 1), (2, 2)"))
            conn.execute(
                text("INSERT INTO sources (library_id, name) VALUES (1, 'Dune'), (2, 'Dune')")
            )

        with pytest.raises(IntegrityError):
            with migrated_engine.begin() as conn:
                conn.execute(text("INSERT INTO sources (library_id, name) VALUES (1, 'Dune')"))

    def test_defaults(self, migrated_engine):
        with migrated_engine.begin() as conn:
            conn.execute(text("INSERT INTO libraries (id, owner_id) VALUES (1, 1)"))
            conn.execute(text("INSERT INTO users (id, chat_id, library_id) VALUES (1, 1, 1)"))
            conn.execute(text("INSERT INTO sources (library_id, name) VALUES (1, 'Dune')"))
            state = conn.execute(text("SELECT state FROM users WHERE id = 1")).scalar_one()
            kind = conn.execute(text("SELECT kind FROM sources")).scalar_one()

        assert state == "normal"
        assert kind == "unknown"


class TestDowngrade:
    def test_downgrade_to_base_drops_everything(self, alembic_config, migrated_engine):
        command.downgrade(alembic_config, "base")

        tables = set(inspect(migrated_engine).get_table_names())
        assert not tables & EXPECTED_TABLES

    def test_upgrade_after_downgrade(self, alembic_config, migrated_engine):
        command.downgrade(alembic_config, "base")
        command.upgrade(alembic_config, "head")

        assert EXPECTED_TABLES <= set(inspect(migrated_engine).get_table_names())
