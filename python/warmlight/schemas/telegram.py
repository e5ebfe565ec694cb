"""Telegram Bot API update schemas.

Only the fields the bot reads are modelled; everything else in the payload
is ignored.
"""

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["TelegramUser", "Chat", "Message", "CallbackQuery", "Update"]


class _TelegramModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TelegramUser(_TelegramModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    username: str | None = None


class Chat(_TelegramModel):
    id: int
    type: str
    title: str | None = None


class Message(_TelegramModel):
    message_id: int
    chat: Chat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    date: int | None = None
    text: str | None = None


class CallbackQuery(_TelegramModel):
    """Button press on an inline keyboard."""

    id: str
    from_user: TelegramUser = Field(..., alias="from")
    message: Message | None = None
    data: str | None = None


class Update(_TelegramModel):
    """Incoming update delivered to the webhook."""

    update_id: int
    message: Message | None = None
    callback_query: CallbackQuery | None = None

    @property
    def sender(self) -> TelegramUser | None:
        if self.message is not None:
            return self.message.from_user
        if self.callback_query is not None:
            return self.callback_query.from_user
        return None

    @property
    def chat_id(self) -> int | None:
        if self.message is not None:
            return self.message.chat.id
        if self.callback_query is not None and self.callback_query.message is not None:
            return self.callback_query.message.chat.id
        return None
