"""Dialog state schemas.

A user's dialog state is persisted as two columns: the `state` enum tag and a
JSON `state_data` payload whose shape depends on the tag. Reading decodes
both into one of the variants below; anything that does not validate is
reported as MalformedError so the caller can reset the user to normal.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from warmlight.db.models import LibraryChangeMode, UserState
from warmlight.errors import ErrorCode, MalformedError

__all__ = [
    "NormalState",
    "EditingSourceState",
    "ChangingLibraryState",
    "ConfirmingLibraryChangeState",
    "DialogState",
    "decode_state",
    "encode_state",
]


class _StateBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class NormalState(_StateBase):
    state: Literal["normal"] = "normal"


class EditingSourceState(_StateBase):
    """Waiting for `key: value` lines that edit one source."""

    state: Literal["editing_source"] = "editing_source"
    source_id: int = Field(..., strict=True)


class ChangingLibraryState(_StateBase):
    """A valid token was submitted; waiting for the merge/delete choice."""

    state: Literal["changing_library"] = "changing_library"
    library_id: int = Field(..., strict=True)


class ConfirmingLibraryChangeState(_StateBase):
    """Mode chosen; waiting for the final confirmation."""

    state: Literal["confirming_library_change"] = "confirming_library_change"
    library_id: int = Field(..., strict=True)
    mode: LibraryChangeMode


DialogState = Annotated[
    NormalState | EditingSourceState | ChangingLibraryState | ConfirmingLibraryChangeState,
    Field(discriminator="state"),
]

_dialog_state_adapter: TypeAdapter[DialogState] = TypeAdapter(DialogState)


def decode_state(state: UserState | str, state_data: Any) -> DialogState:
    """Decode the persisted state tag and payload.

    Args:
        state: The `users.state` value.
        state_data: The `users.state_data` JSON value (dict or None).

    Returns:
        The dialog state variant.

    Raises:
        MalformedError: If the payload does not match the tag.
    """
    tag = state.value if isinstance(state, UserState) else str(state)
    if tag == UserState.normal.value:
        return NormalState()

    if not isinstance(state_data, dict):
        raise MalformedError(
            ErrorCode.E_STATE_MALFORMED, f"State data for '{tag}' is missing or not an object"
        )

    try:
        return _dialog_state_adapter.validate_python({**state_data, "state": tag})
    except ValidationError as exc:
        raise MalformedError(
            ErrorCode.E_STATE_MALFORMED, f"State data does not match state '{tag}'"
        ) from exc


def encode_state(dialog_state: DialogState) -> tuple[UserState, dict | None]:
    """Return the `(state, state_data)` column values for a dialog state."""
    tag = UserState(dialog_state.state)
    if tag == UserState.normal:
        return tag, None
    return tag, dialog_state.model_dump(mode="json", exclude={"state"})
