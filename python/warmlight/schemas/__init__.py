"""Pydantic schemas.

All schemas are re-exported here for convenient imports.
"""

from warmlight.schemas.library import (
    ExpiredSourceUser,
    LibraryOut,
    MigrationResult,
    SweepResult,
    TokenGrant,
)
from warmlight.schemas.source import (
    ArticleData,
    BookData,
    ParsedQuote,
    PersonData,
    QuoteOut,
    SourceFilter,
    SourceOut,
    source_data_model,
)
from warmlight.schemas.state import (
    ChangingLibraryState,
    ConfirmingLibraryChangeState,
    DialogState,
    EditingSourceState,
    NormalState,
    decode_state,
    encode_state,
)
from warmlight.schemas.telegram import CallbackQuery, Chat, Message, TelegramUser, Update

__all__ = [
    # Library
    "LibraryOut",
    "TokenGrant",
    "MigrationResult",
    "ExpiredSourceUser",
    "SweepResult",
    # Sources and quotes
    "BookData",
    "PersonData",
    "ArticleData",
    "SourceOut",
    "SourceFilter",
    "ParsedQuote",
    "QuoteOut",
    "source_data_model",
    # Dialog state
    "NormalState",
    "EditingSourceState",
    "ChangingLibraryState",
    "ConfirmingLibraryChangeState",
    "DialogState",
    "decode_state",
    "encode_state",
    # Telegram
    "TelegramUser",
    "Chat",
    "Message",
    "CallbackQuery",
    "Update",
]
