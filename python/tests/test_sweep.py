"""Tests for the active-source expiry sweep."""

from datetime import UTC, datetime, timedelta

from tests.factories import create_test_user
from warmlight.bot import strings
from warmlight.db.models import User
from warmlight.services.sources import deactivate_expired_sources
from warmlight.tasks.deactivate_sources import sweep_expired_active_sources

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _active(db, user_id: int, minutes_from_now: int, **kwargs) -> User:
    return create_test_user(
        db,
        user_id,
        active_source="Dune",
        active_source_expire=NOW + timedelta(minutes=minutes_from_now),
        **kwargs,
    )


class TestDeactivateExpiredSources:
    def test_only_past_expiry_is_cleared(self, db_session):
        _active(db_session, 1, -5, chat_id=1001, first_name="Ann")
        _active(db_session, 2, 5)
        create_test_user(db_session, 3)

        expired = deactivate_expired_sources(db_session, now=NOW)

        assert [(u.user_id, u.chat_id, u.first_name) for u in expired] == [(1, 1001, "Ann")]
        assert db_session.get(User, 1, populate_existing=True).active_source is None
        still_active = db_session.get(User, 2, populate_existing=True)
        assert still_active.active_source == "Dune"

    def test_second_run_clears_nothing(self, db_session):
        _active(db_session, 1, -5)

        assert len(deactivate_expired_sources(db_session, now=NOW)) == 1
        assert deactivate_expired_sources(db_session, now=NOW) == []


class TestSweep:
    def test_notifies_each_expired_user_once(self, db_session, session_factory, transport):
        _active(db_session, 1, -5, chat_id=1001)
        _active(db_session, 2, 5, chat_id=1002)

        result = sweep_expired_active_sources(transport, session_factory, now=NOW)
        again = sweep_expired_active_sources(transport, session_factory, now=NOW)

        assert (result.expired, result.notified, result.failed) == (1, 1, 0)
        assert again.expired == 0
        assert transport.texts_for(1001) == [strings.ACTIVE_SOURCE_EXPIRED]
        assert transport.texts_for(1002) == []

    def test_failed_notification_does_not_stop_the_loop(
        self, db_session, session_factory, transport
    ):
        _active(db_session, 1, -5, chat_id=1001)
        _active(db_session, 2, -1, chat_id=1002)
        transport.failing_chat_ids.add(1001)

        result = sweep_expired_active_sources(transport, session_factory, now=NOW)

        assert result.expired == 2
        assert result.notified == 1
        assert result.failed == 1
        assert result.failed_user_ids == [1]
        assert transport.texts_for(1002) == [strings.ACTIVE_SOURCE_EXPIRED]
        # Cleared even though the notification failed; no retry on the next run
        assert db_session.get(User, 1, populate_existing=True).active_source is None
        transport.failing_chat_ids.clear()
        assert sweep_expired_active_sources(transport, session_factory, now=NOW).expired == 0

    def test_nothing_expired(self, session_factory, transport):
        result = sweep_expired_active_sources(transport, session_factory, now=NOW)
        assert result.model_dump() == {
            "expired": 0,
            "notified": 0,
            "failed": 0,
            "failed_user_ids": [],
        }
        assert transport.sent == []
