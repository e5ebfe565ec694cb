"""Tests for sources: filters, edits and the active source."""

from datetime import UTC, datetime, timedelta

import pytest

from tests.factories import create_test_source, create_test_user
from warmlight.db.models import SourceKind, User
from warmlight.errors import ErrorCode, MalformedError, SourceNotFoundError
from warmlight.schemas.source import SourceFilter
from warmlight.services.sources import (
    apply_source_edit,
    build_source_data,
    clear_expired_active_source,
    deactivate_source,
    parse_edit_message,
    parse_source_filter,
    query_sources,
    set_active_source,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestParseSourceFilter:
    def test_text_and_kind(self):
        assert parse_source_filter("animal @book farm") == SourceFilter(
            text="animal farm", kind=SourceKind.book
        )

    def test_empty(self):
        assert parse_source_filter("") == SourceFilter()

    def test_two_kinds_rejected(self):
        with pytest.raises(MalformedError) as exc_info:
            parse_source_filter("@book @person")
        assert exc_info.value.code == ErrorCode.E_SOURCE_FILTER_MALFORMED

    def test_unknown_kind_rejected(self):
        with pytest.raises(MalformedError) as exc_info:
            parse_source_filter("@movie")
        assert exc_info.value.code == ErrorCode.E_INVALID_SOURCE_KIND


class TestQuerySources:
    def test_case_insensitive_substring_and_kind(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "Animal Farm", kind=SourceKind.book)
        create_test_source(db_session, user.library_id, "Farmer's Almanac", kind=SourceKind.article)
        create_test_source(db_session, user.library_id, "Dune", kind=SourceKind.book)

        by_text = query_sources(db_session, user.library_id, SourceFilter(text="FARM"))
        assert [s.name for s in by_text] == ["Animal Farm", "Farmer's Almanac"]

        by_kind = query_sources(
            db_session, user.library_id, SourceFilter(text="farm", kind=SourceKind.book)
        )
        assert [s.name for s in by_kind] == ["Animal Farm"]

    def test_scoped_to_library_and_limited(self, db_session):
        user = create_test_user(db_session, 1)
        other = create_test_user(db_session, 2)
        for i in range(12):
            create_test_source(db_session, user.library_id, f"Source {i}")
        create_test_source(db_session, other.library_id, "Foreign")

        sources = query_sources(db_session, user.library_id)
        assert len(sources) == 10
        assert all(s.library_id == user.library_id for s in sources)

    def test_like_wildcards_are_literal(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "100% Pure")
        create_test_source(db_session, user.library_id, "1000 Pure")

        sources = query_sources(db_session, user.library_id, SourceFilter(text="100%"))
        assert [s.name for s in sources] == ["100% Pure"]


class TestSourceEdit:
    def test_parse_edit_message(self):
        edits = parse_edit_message("Kind: book\n\nAuthor: George Orwell\ninfo url: https://x.y/z")
        assert edits == {"kind": "book", "author": "George Orwell", "info url": "https://x.y/z"}

    def test_line_without_colon_rejected(self):
        with pytest.raises(MalformedError) as exc_info:
            parse_edit_message("kind book")
        assert exc_info.value.code == ErrorCode.E_SOURCE_EDIT_MALFORMED

    def test_kind_change_starts_from_empty_data(self):
        data = build_source_data(
            SourceKind.book, {"author": "Orwell"}, SourceKind.article, {"url": "https://a.b"}
        )
        assert data == {"url": "https://a.b", "author": ""}

    def test_same_kind_keeps_existing_fields(self):
        data = build_source_data(
            SourceKind.book,
            {"author": "Orwell", "link_to_info": "https://info"},
            SourceKind.book,
            {"author url": "https://orwell"},
        )
        assert data == {
            "author": "Orwell",
            "link_to_info": "https://info",
            "link_to_author": "https://orwell",
        }

    def test_person_lived_in(self):
        data = build_source_data(
            SourceKind.unknown, None, SourceKind.person, {"lived in": "1903 - 1950"}
        )
        assert data["born_on"] == 1903
        assert data["death_on"] == 1950

    def test_malformed_lived_in(self):
        with pytest.raises(MalformedError) as exc_info:
            build_source_data(SourceKind.person, None, SourceKind.person, {"lived in": "1903"})
        assert exc_info.value.code == ErrorCode.E_LIVED_IN_MALFORMED

    def test_unknown_kind_has_no_data(self):
        assert build_source_data(SourceKind.book, {"author": "x"}, SourceKind.unknown, {}) is None

    def test_apply_edit_renames_and_changes_kind(self, db_session):
        user = create_test_user(db_session, 1)
        source = create_test_source(db_session, user.library_id, "Orwell")

        edited = apply_source_edit(
            db_session,
            user.library_id,
            source.id,
            {"name": "George Orwell", "kind": "person", "title": "Writer"},
        )

        assert edited.name == "George Orwell"
        assert edited.kind == SourceKind.person
        assert edited.data["title"] == "Writer"

    def test_apply_edit_name_taken(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "Dune")
        source = create_test_source(db_session, user.library_id, "Orwell")

        with pytest.raises(MalformedError) as exc_info:
            apply_source_edit(db_session, user.library_id, source.id, {"name": "Dune"})
        assert exc_info.value.code == ErrorCode.E_SOURCE_NAME_TAKEN

    def test_apply_edit_other_library_source(self, db_session):
        user = create_test_user(db_session, 1)
        other = create_test_user(db_session, 2)
        foreign = create_test_source(db_session, other.library_id, "Dune")

        with pytest.raises(SourceNotFoundError):
            apply_source_edit(db_session, user.library_id, foreign.id, {"kind": "book"})


class TestActiveSource:
    def test_set_active_source(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "Dune")

        expires = set_active_source(db_session, 1, user.library_id, "Dune", 80, now=NOW)

        assert expires == NOW + timedelta(minutes=80)
        refreshed = db_session.get(User, 1, populate_existing=True)
        assert refreshed.active_source == "Dune"
        assert refreshed.active_source_expire == expires

    def test_set_unknown_source(self, db_session):
        user = create_test_user(db_session, 1)
        with pytest.raises(SourceNotFoundError):
            set_active_source(db_session, 1, user.library_id, "Nope", 10, now=NOW)

    def test_non_positive_timeout_rejected(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "Dune")
        with pytest.raises(MalformedError):
            set_active_source(db_session, 1, user.library_id, "Dune", 0, now=NOW)

    def test_deactivate_twice(self, db_session):
        create_test_user(
            db_session, 1, active_source="Dune", active_source_expire=NOW + timedelta(minutes=5)
        )

        assert deactivate_source(db_session, 1) == "Dune"
        assert deactivate_source(db_session, 1) is None

    def test_lazy_clear_only_when_expired(self, db_session):
        create_test_user(
            db_session, 1, active_source="Dune", active_source_expire=NOW + timedelta(minutes=5)
        )

        assert clear_expired_active_source(db_session, 1, now=NOW) is False
        assert clear_expired_active_source(db_session, 1, now=NOW + timedelta(minutes=6)) is True
        assert clear_expired_active_source(db_session, 1, now=NOW + timedelta(minutes=7)) is False
