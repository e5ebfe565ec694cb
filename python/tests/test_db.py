"""Tests for sessions, the transaction helper and user bootstrap."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy import insert, select, text
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from tests.factories import count_rows, create_test_user
from warmlight.db.models import Library, User, UserState
from warmlight.db.session import set_local_statement_timeout, transaction
from warmlight.errors import ErrorCode, MalformedError, StoreFailureError
from warmlight.services.users import get_or_create_user


class TestDatabaseConnectivity:
    def test_session_opens_and_executes_query(self, db_session: Session):
        assert db_session.execute(text("SELECT 1")).scalar() == 1

    def test_statement_timeout_is_noop_on_sqlite(self, db_session: Session):
        set_local_statement_timeout(db_session, 10_000)
        assert db_session.execute(text("SELECT 1")).scalar() == 1


class TestTransaction:
    def test_commits_on_success(self, db_session, session_factory):
        with transaction(db_session):
            db_session.add(Library(owner_id=1))

        with session_factory() as other:
            assert count_rows(other, Library) == 1

    def test_app_error_rolls_back_and_propagates(self, db_session):
        with pytest.raises(MalformedError):
            with transaction(db_session):
                db_session.add(Library(owner_id=1))
                db_session.flush()
                raise MalformedError(ErrorCode.E_INVALID_REQUEST, "nope")

        assert count_rows(db_session, Library) == 0

    def test_integrity_error_propagates(self, db_session):
        user = create_test_user(db_session, 1)

        with pytest.raises(IntegrityError):
            with transaction(db_session):
                db_session.execute(
                    insert(User).values(
                        id=1,
                        chat_id=1,
                        first_name="",
                        library_id=user.library_id,
                        state=UserState.normal,
                    )
                )

    def test_operational_error_is_a_store_timeout(self, db_session):
        with pytest.raises(StoreFailureError) as exc_info:
            with transaction(db_session):
                raise OperationalError("SELECT 1", {}, Exception("canceling statement"))

        assert exc_info.value.code == ErrorCode.E_STORE_TIMEOUT

    def test_other_driver_errors_are_store_failures(self, db_session):
        with pytest.raises(StoreFailureError) as exc_info:
            with transaction(db_session):
                raise ProgrammingError("SELECT nope", {}, Exception("syntax error"))

        assert exc_info.value.code == ErrorCode.E_STORE_FAILURE


class TestUTCDateTime:
    def test_round_trips_as_utc(self, db_session, session_factory):
        plus_two = timezone(timedelta(hours=2))
        create_test_user(
            db_session,
            1,
            active_source="Dune",
            active_source_expire=datetime(2026, 3, 1, 14, 0, tzinfo=plus_two),
        )

        with session_factory() as other:
            expire = other.execute(select(User.active_source_expire)).scalar_one()

        assert expire == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        assert expire.tzinfo is not None


class TestGetOrCreateUser:
    def test_creates_user_with_own_library(self, db_session):
        user, created = get_or_create_user(db_session, 42, 4200, "Ann")

        assert created is True
        assert user.chat_id == 4200
        assert user.state == UserState.normal
        library = db_session.get(Library, user.library_id)
        assert library.owner_id == 42

    def test_existing_user(self, db_session):
        get_or_create_user(db_session, 42, 4200, "Ann")

        user, created = get_or_create_user(db_session, 42, 4200, "Ann")

        assert created is False
        assert count_rows(db_session, Library) == 1
        assert user.id == 42
