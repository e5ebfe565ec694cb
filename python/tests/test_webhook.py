"""Tests for the HTTP surface: webhook, health checks and request IDs."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tests.factories import create_test_user
from warmlight.app import add_request_id_middleware, create_app
from warmlight.bot import strings
from warmlight.db.session import get_db
from warmlight.middleware.request_id import resolve_request_id

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def quote_update(user_id: int, text: str) -> dict:
    return {
        "update_id": 1001,
        "message": {
            "message_id": 5,
            "date": 1772366400,
            "chat": {"id": user_id, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": "Ann"},
            "text": text,
        },
    }


@pytest.fixture
def secured_client(settings, session_factory, transport) -> Generator[TestClient, None, None]:
    settings = settings.model_copy(update={"telegram_webhook_secret": "s3cret"})
    app = create_app(settings=settings, transport=transport, session_factory=session_factory)
    add_request_id_middleware(app, log_requests=False)
    with TestClient(app) as client:
        yield client


class TestWebhook:
    def test_update_is_handled(self, client, transport, db_session):
        create_test_user(db_session, 1)

        response = client.post("/telegram/webhook", json=quote_update(1, "A quote"))

        assert response.status_code == 200
        assert response.json() == {"data": {"ok": True}}
        assert transport.texts_for(1) == [strings.QUOTE_ADDED]

    def test_unknown_update_kind_is_accepted(self, client, transport):
        response = client.post("/telegram/webhook", json={"update_id": 7, "edited_message": {}})

        assert response.status_code == 200
        assert transport.sent == []

    def test_invalid_body(self, client):
        response = client.post("/telegram/webhook", json={"message": "nope"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_handling_error_still_answers_200(self, client, transport, db_session, monkeypatch):
        create_test_user(db_session, 1)

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("warmlight.bot.dispatcher.handle_normal_message", broken)

        response = client.post("/telegram/webhook", json=quote_update(1, "A quote"))

        assert response.status_code == 200
        assert transport.texts_for(1) == [strings.INTERNAL_SERVER_ERROR]


class TestWebhookSecret:
    @pytest.mark.parametrize("headers", [{}, {SECRET_HEADER: "wrong"}])
    def test_missing_or_wrong_secret(self, secured_client, transport, headers):
        response = secured_client.post(
            "/telegram/webhook", json=quote_update(1, "/start"), headers=headers
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E_WEBHOOK_FORBIDDEN"
        assert transport.sent == []

    def test_correct_secret(self, secured_client, transport):
        response = secured_client.post(
            "/telegram/webhook",
            json=quote_update(1, "/start"),
            headers={SECRET_HEADER: "s3cret"},
        )

        assert response.status_code == 200
        assert transport.texts_for(1) == [strings.welcome("Ann")]


class TestWebhookRegistration:
    def test_registered_on_startup(self, settings, session_factory, transport):
        settings = settings.model_copy(
            update={
                "telegram_webhook_url": "https://bot.example.com/telegram/webhook",
                "telegram_webhook_secret": "s3cret",
            }
        )
        app = create_app(settings=settings, transport=transport, session_factory=session_factory)

        with TestClient(app):
            assert transport.webhook == ("https://bot.example.com/telegram/webhook", "s3cret")

    def test_not_registered_without_url(self, client, transport):
        assert transport.webhook is None


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok"}}

    def test_database_health(self, client):
        response = client.get("/health/db")
        assert response.status_code == 200
        assert response.json()["data"]["database"] == "ok"

    def test_database_down(self, client):
        class BrokenSession:
            def execute(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        client.app.dependency_overrides[get_db] = lambda: BrokenSession()

        response = client.get("/health/db")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "E_STORE_TIMEOUT"

    def test_unknown_path(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"


class TestRequestId:
    def test_generated_when_missing(self, secured_client):
        response = secured_client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 36

    def test_incoming_id_echoed(self, secured_client):
        response = secured_client.get("/health", headers={"X-Request-ID": "probe-42"})
        assert response.headers["X-Request-ID"] == "probe-42"

    def test_error_body_carries_request_id(self, secured_client):
        response = secured_client.post(
            "/telegram/webhook",
            json=quote_update(1, "x"),
            headers={"X-Request-ID": "req-1"},
        )
        assert response.json()["error"]["request_id"] == "req-1"

    @pytest.mark.parametrize(
        "incoming,expected",
        [
            ("ABCDEF12-3456-7890-ABCD-EF1234567890", "abcdef12-3456-7890-abcd-ef1234567890"),
            ("trace.id_1", "trace.id_1"),
        ],
    )
    def test_resolve_valid(self, incoming, expected):
        assert resolve_request_id(incoming) == expected

    @pytest.mark.parametrize("incoming", [None, "", "has spaces", "x" * 129])
    def test_resolve_replaces_invalid(self, incoming):
        resolved = resolve_request_id(incoming)
        assert resolved != incoming
        assert len(resolved) == 36
