"""Library-related Pydantic schemas.

Results of the token exchange, the migration engine and the expiry sweep.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from warmlight.db.models import LibraryChangeMode

__all__ = [
    "LibraryOut",
    "TokenGrant",
    "MigrationResult",
    "ExpiredSourceUser",
    "SweepResult",
]


class LibraryOut(BaseModel):
    """Snapshot of a library row."""

    id: int
    owner_id: int
    token: UUID | None = None
    token_expires_on: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TokenGrant(BaseModel):
    """A freshly issued library token."""

    token: UUID
    expires_on: datetime
    library_id: int


class MigrationResult(BaseModel):
    """Outcome of moving a user from one library to another.

    Row counts are the rows deleted (delete mode) or re-scoped (merge mode).
    `renamed_sources` and `renamed_tags` count merged rows whose name already
    existed in the target library and got a numeric suffix.
    """

    mode: LibraryChangeMode
    user_id: int
    from_library_id: int
    to_library_id: int
    quotes: int = 0
    tags: int = 0
    sources: int = 0
    quote_tags: int = 0
    quote_sources: int = 0
    renamed_sources: int = 0
    renamed_tags: int = 0
    library_deleted: bool = False
    new_owner_id: int | None = None


class ExpiredSourceUser(BaseModel):
    """A user whose active source was just cleared by the sweep."""

    user_id: int
    chat_id: int
    first_name: str = ""


class SweepResult(BaseModel):
    expired: int = 0
    notified: int = 0
    failed: int = 0
    failed_user_ids: list[int] = Field(default_factory=list)
