"""Chat transport abstraction.

Provides a narrow interface over the Telegram Bot API:
- Sending text messages (optionally as a reply, with an inline keyboard)
- Answering callback queries (stops the button spinner)
- Registering the webhook

TelegramClient talks to the real Bot API with httpx. FakeChatTransport
records everything in memory for tests and local runs without a bot token.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from warmlight.config import get_settings
from warmlight.errors import TransportError
from warmlight.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SentMessage:
    """A message as recorded by FakeChatTransport."""

    chat_id: int
    text: str
    reply_to_message_id: int | None = None
    reply_markup: dict | None = None
    parse_mode: str | None = None


class ChatTransportBase(ABC):
    """Abstract base class for chat transport implementations."""

    @abstractmethod
    def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to_message_id: int | None = None,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> None:
        """Send a text message to a chat.

        Raises:
            TransportError: If the platform rejects or does not answer the call.
        """
        ...

    @abstractmethod
    def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        """Acknowledge a button press.

        Raises:
            TransportError: If the platform rejects or does not answer the call.
        """
        ...

    @abstractmethod
    def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        """Register the webhook URL with the platform.

        Raises:
            TransportError: If registration fails.
        """
        ...


class TelegramClient(ChatTransportBase):
    """Production Telegram Bot API client.

    Uses httpx for HTTP operations against https://api.telegram.org/bot<token>/<method>.
    """

    def __init__(
        self,
        bot_token: str,
        base_url: str = "https://api.telegram.org",
        timeout_s: float = 10.0,
    ):
        """Initialize the client.

        Args:
            bot_token: Bot API token from BotFather.
            base_url: Bot API base URL (overridable for a local Bot API server).
            timeout_s: Per-request timeout.
        """
        self._api_url = f"{base_url.rstrip('/')}/bot{bot_token}"
        self._timeout = httpx.Timeout(timeout_s, connect=min(timeout_s, 5.0))

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        url = f"{self._api_url}/{method}"
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as exc:
            # Never log the URL: it contains the bot token
            raise TransportError(f"{method} failed: {type(exc).__name__}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200 or not body.get("ok"):
            description = body.get("description") or response.text[:200]
            raise TransportError(f"{method} failed: {response.status_code} {description}")

        return body.get("result")

    def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to_message_id: int | None = None,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> None:
        """Send a message via sendMessage."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id is not None:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode is not None:
            payload["parse_mode"] = parse_mode
        self._call("sendMessage", payload)

    def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)

    def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        payload: dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message", "callback_query"],
        }
        if secret_token:
            payload["secret_token"] = secret_token
        self._call("setWebhook", payload)
        logger.info("telegram_webhook_registered")


class FakeChatTransport(ChatTransportBase):
    """Fake transport for testing without the Bot API.

    Records messages in memory; chats listed in `failing_chat_ids`, and texts
    listed in `failing_texts`, raise TransportError on send.
    """

    def __init__(self):
        self.sent: list[SentMessage] = []
        self.answered_callbacks: list[tuple[str, str | None]] = []
        self.webhook: tuple[str, str | None] | None = None
        self.failing_chat_ids: set[int] = set()
        self.failing_texts: set[str] = set()

    def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to_message_id: int | None = None,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> None:
        if chat_id in self.failing_chat_ids or text in self.failing_texts:
            raise TransportError(f"sendMessage failed for chat {chat_id}")
        self.sent.append(
            SentMessage(
                chat_id=chat_id,
                text=text,
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
                parse_mode=parse_mode,
            )
        )

    def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        self.answered_callbacks.append((callback_query_id, text))

    def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        self.webhook = (url, secret_token)

    # Test helper methods

    def texts_for(self, chat_id: int) -> list[str]:
        """Texts sent to one chat, in order (test helper)."""
        return [message.text for message in self.sent if message.chat_id == chat_id]

    def last_for(self, chat_id: int) -> SentMessage | None:
        """Most recent message sent to one chat (test helper)."""
        for message in reversed(self.sent):
            if message.chat_id == chat_id:
                return message
        return None

    def clear(self) -> None:
        """Forget everything recorded (test helper)."""
        self.sent.clear()
        self.answered_callbacks.clear()
        self.failing_chat_ids.clear()
        self.failing_texts.clear()
        self.webhook = None


def get_transport() -> ChatTransportBase:
    """Get the configured chat transport.

    Returns:
        TelegramClient if TELEGRAM_BOT_TOKEN is set, FakeChatTransport otherwise.
    """
    settings = get_settings()
    if settings.telegram_bot_token:
        return TelegramClient(
            bot_token=settings.telegram_bot_token,
            base_url=settings.telegram_api_base_url,
            timeout_s=settings.telegram_timeout_s,
        )

    logger.warning("telegram_token_missing_using_fake_transport")
    return FakeChatTransport()
