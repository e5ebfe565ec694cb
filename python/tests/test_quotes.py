"""Tests for quote parsing, creation and search."""

import pytest
from sqlalchemy import select

from tests.factories import count_rows, create_test_quote, create_test_source, create_test_user
from warmlight.db.models import QuoteSource, QuoteTag, Source, Tag
from warmlight.errors import ErrorCode, MalformedError
from warmlight.schemas.source import ParsedQuote
from warmlight.services.quotes import create_quote_with_data, parse_quote, search_quotes


class TestParseQuote:
    def test_text_sources_and_tags(self):
        parsed = parse_quote(
            "Premature optimization is the root of all evil.\n"
            "Sources: Donald Knuth, The Art of Computer Programming\n"
            "#programming #optimization"
        )
        assert parsed.text == "Premature optimization is the root of all evil."
        assert parsed.main_source == "Donald Knuth"
        assert parsed.sources == ["Donald Knuth", "The Art of Computer Programming"]
        assert parsed.tags == ["programming", "optimization"]

    def test_text_only(self):
        parsed = parse_quote("  \nJust a thought\n")
        assert parsed == ParsedQuote(text="Just a thought")

    def test_duplicates_dropped_in_order(self):
        parsed = parse_quote("text\nsources: A, B, A,\n#x #y #x")
        assert parsed.sources == ["A", "B"]
        assert parsed.tags == ["x", "y"]

    def test_hash_in_first_line_is_not_a_tag(self):
        assert parse_quote("We're #1\n#sports").tags == ["sports"]

    def test_empty_rejected(self):
        with pytest.raises(MalformedError) as exc_info:
            parse_quote(" \n\n ")
        assert exc_info.value.code == ErrorCode.E_QUOTE_EMPTY


class TestCreateQuote:
    def test_creates_missing_tags_and_sources(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_source(db_session, user.library_id, "Donald Knuth")

        quote = create_quote_with_data(
            db_session,
            user.library_id,
            ParsedQuote(
                text="q",
                main_source="Donald Knuth",
                sources=["Donald Knuth", "TAOCP"],
                tags=["programming"],
            ),
        )

        assert quote.main_source == "Donald Knuth"
        names = set(
            db_session.scalars(select(Source.name).where(Source.library_id == user.library_id))
        )
        assert names == {"Donald Knuth", "TAOCP"}
        assert count_rows(db_session, Tag, user.library_id) == 1
        assert count_rows(db_session, QuoteSource, user.library_id) == 2
        assert count_rows(db_session, QuoteTag, user.library_id) == 1

    def test_link_rows_carry_library(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_user(db_session, 2)

        create_quote_with_data(
            db_session, user.library_id, ParsedQuote(text="q", sources=["S"], tags=["t"])
        )

        assert count_rows(db_session, QuoteSource) == count_rows(
            db_session, QuoteSource, user.library_id
        )
        assert count_rows(db_session, QuoteTag) == count_rows(
            db_session, QuoteTag, user.library_id
        )


class TestSearchQuotes:
    def test_all_words_case_insensitive_newest_first(self, db_session):
        user = create_test_user(db_session, 1)
        create_test_quote(db_session, user.library_id, "The root of all evil")
        create_test_quote(db_session, user.library_id, "Evil is the root")
        create_test_quote(db_session, user.library_id, "Nothing to see")

        results = search_quotes(db_session, user.library_id, "ROOT evil")

        assert [q.text for q in results] == ["Evil is the root", "The root of all evil"]

    def test_scoped_to_library(self, db_session):
        user = create_test_user(db_session, 1)
        other = create_test_user(db_session, 2)
        create_test_quote(db_session, other.library_id, "root of all evil")

        assert search_quotes(db_session, user.library_id, "root") == []
