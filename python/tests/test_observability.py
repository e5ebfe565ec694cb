"""Tests for logging context injection.

Covers:
- Request context (request_id, path, method)
- Update context (update_id, user_id, chat_id) set by the dispatcher
- Task context (task_name, task_id) set by Celery tasks
- Clearing, and omission of unset values
"""

from warmlight.logging import (
    add_request_context,
    clear_request_context,
    clear_task_context,
    clear_update_context,
    configure_task_logging,
    set_request_context,
    set_update_context,
)


class TestContextVars:
    def setup_method(self):
        clear_request_context()
        clear_task_context()

    def teardown_method(self):
        clear_request_context()
        clear_task_context()

    def test_request_context_injected(self):
        set_request_context("req-1", path="/telegram/webhook", method="POST")
        event_dict = add_request_context(None, "info", {})
        assert event_dict == {
            "request_id": "req-1",
            "path": "/telegram/webhook",
            "method": "POST",
        }

    def test_update_context_injected(self):
        set_request_context("req-1")
        set_update_context(77, user_id=5, chat_id=5)
        event_dict = add_request_context(None, "info", {})
        assert event_dict["update_id"] == 77
        assert event_dict["user_id"] == 5
        assert event_dict["chat_id"] == 5

    def test_explicit_fields_win(self):
        set_update_context(77, user_id=5)
        event_dict = add_request_context(None, "info", {"user_id": 9})
        assert event_dict["user_id"] == 9

    def test_update_context_cleared_independently(self):
        set_request_context("req-1")
        set_update_context(77, user_id=5, chat_id=5)
        clear_update_context()
        event_dict = add_request_context(None, "info", {})
        assert event_dict == {"request_id": "req-1"}

    def test_clear_request_context_clears_update(self):
        set_request_context("req-1", path="/health", method="GET")
        set_update_context(77, user_id=5)
        clear_request_context()
        assert add_request_context(None, "info", {}) == {}

    def test_task_context(self):
        configure_task_logging(
            request_id="req-2", task_name="deactivate_expired_sources", task_id="t-1"
        )
        event_dict = add_request_context(None, "info", {})
        assert event_dict["task_name"] == "deactivate_expired_sources"
        assert event_dict["task_id"] == "t-1"
        assert event_dict["request_id"] == "req-2"

        clear_task_context()
        assert add_request_context(None, "info", {}) == {}

    def test_none_values_not_injected(self):
        set_update_context(77)
        event_dict = add_request_context(None, "info", {})
        assert event_dict == {"update_id": 77}
