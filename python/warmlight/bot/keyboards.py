"""Inline keyboards and callback data.

Callback data is a short colon-separated string (Telegram caps it at 64
bytes):
    lib:merge / lib:delete      merge or delete choice while changing library
    src:info:<id> / src:edit:<id>  per-source buttons of /getsources
"""

from dataclasses import dataclass
from enum import Enum

from warmlight.bot import strings
from warmlight.db.models import LibraryChangeMode, Source
from warmlight.errors import ErrorCode, MalformedError


class CallbackKind(str, Enum):
    library_mode = "lib"
    source_info = "src:info"
    source_edit = "src:edit"


@dataclass(frozen=True)
class CallbackAction:
    """A decoded button press."""

    kind: CallbackKind
    mode: LibraryChangeMode | None = None
    source_id: int | None = None

    def encode(self) -> str:
        if self.kind == CallbackKind.library_mode:
            return f"{self.kind.value}:{self.mode.value}"
        return f"{self.kind.value}:{self.source_id}"

    @classmethod
    def parse(cls, data: str | None) -> "CallbackAction":
        """Decode callback data.

        Raises:
            MalformedError: If the data is missing or not one of the known shapes.
        """
        parts = (data or "").split(":")
        if len(parts) == 2 and parts[0] == CallbackKind.library_mode.value:
            try:
                return cls(kind=CallbackKind.library_mode, mode=LibraryChangeMode(parts[1]))
            except ValueError:
                pass
        elif len(parts) == 3 and parts[2].isdigit():
            prefix = f"{parts[0]}:{parts[1]}"
            if prefix in (CallbackKind.source_info.value, CallbackKind.source_edit.value):
                return cls(kind=CallbackKind(prefix), source_id=int(parts[2]))
        raise MalformedError(ErrorCode.E_INVALID_CALLBACK, f"Unknown callback data: {data!r}")


def library_mode_keyboard() -> dict:
    return {
        "inline_keyboard": [
            [
                {
                    "text": strings.MERGE_BUTTON,
                    "callback_data": CallbackAction(
                        CallbackKind.library_mode, mode=LibraryChangeMode.merge
                    ).encode(),
                },
                {
                    "text": strings.DELETE_BUTTON,
                    "callback_data": CallbackAction(
                        CallbackKind.library_mode, mode=LibraryChangeMode.delete
                    ).encode(),
                },
            ]
        ]
    }


def sources_keyboard(sources: list[Source]) -> dict | None:
    """One row per source: "N. Info" and "N. Edit"."""
    if not sources:
        return None
    rows = []
    for i, source in enumerate(sources, start=1):
        rows.append(
            [
                {
                    "text": f"{i}. Info",
                    "callback_data": CallbackAction(
                        CallbackKind.source_info, source_id=source.id
                    ).encode(),
                },
                {
                    "text": f"{i}. Edit",
                    "callback_data": CallbackAction(
                        CallbackKind.source_edit, source_id=source.id
                    ).encode(),
                },
            ]
        )
    return {"inline_keyboard": rows}


def confirm_library_change_keyboard() -> dict:
    return {
        "keyboard": [
            [{"text": strings.CONFIRM_LIBRARY_CHANGE_ANSWER}],
            [{"text": strings.CANCEL_ANSWER}],
        ],
        "one_time_keyboard": True,
        "resize_keyboard": True,
    }


REMOVE_KEYBOARD = {"remove_keyboard": True}
