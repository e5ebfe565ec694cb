"""Outgoing replies.

Handlers never talk to the transport directly; they return a Reaction, and
the dispatcher delivers it after the database work has been committed.
"""

from dataclasses import dataclass, field

from warmlight.errors import TransportError
from warmlight.logging import get_logger
from warmlight.transport import ChatTransportBase

logger = get_logger(__name__)


@dataclass(frozen=True)
class OutgoingMessage:
    chat_id: int
    text: str
    reply_to_message_id: int | None = None
    reply_markup: dict | None = None


@dataclass
class Reaction:
    """Messages to send, plus the toast shown when answering a button press."""

    messages: list[OutgoingMessage] = field(default_factory=list)
    callback_text: str | None = None

    def add(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        reply_markup: dict | None = None,
    ) -> "Reaction":
        self.messages.append(
            OutgoingMessage(
                chat_id=chat_id,
                text=text,
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
            )
        )
        return self

    @classmethod
    def text(
        cls,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        reply_markup: dict | None = None,
    ) -> "Reaction":
        return cls().add(chat_id, text, reply_to_message_id, reply_markup)

    @property
    def texts(self) -> list[str]:
        return [message.text for message in self.messages]

    def deliver(self, transport: ChatTransportBase) -> int:
        """Send every message in order.

        A message the platform rejects is logged and skipped; the rest are
        still sent.

        Returns:
            Number of messages that could not be delivered.
        """
        failed = 0
        for message in self.messages:
            try:
                transport.send_message(
                    message.chat_id,
                    message.text,
                    reply_to_message_id=message.reply_to_message_id,
                    reply_markup=message.reply_markup,
                )
            except TransportError as exc:
                failed += 1
                logger.warning(
                    "reaction_delivery_failed", chat_id=message.chat_id, error=exc.message
                )
        return failed
