"""Library migration engine.

Moves a user from their current library into a target library, either
deleting the current library's content or merging it into the target. The
whole operation is one transaction; any failure leaves every row as it was.

Order of work inside the transaction:
1. Lock the target library (missing -> LibraryNotFoundError).
2. Lock the user and check it still belongs to the current library
   (otherwise StaleMigrationError; catches a repeated confirmation).
3. Lock the current library and find its other members.
4. If nobody else uses the current library: delete (delete mode) or
   re-scope (merge mode) quotes_tags, quotes_sources, quotes, tags, sources.
5. Point the user at the target library and reset its dialog state.
6. Delete the current library, or, when other members remain, keep it and
   hand ownership to the remaining member with the lowest ID if the leaving
   user owned it.

Merge keeps every row. Sources and tags are unique per library by name; a
merged row whose name already exists in the target gets a " (2)", " (3)", ...
suffix instead of being folded into the existing row.
"""

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warmlight.db.models import (
    Library,
    LibraryChangeMode,
    Quote,
    QuoteSource,
    QuoteTag,
    Source,
    Tag,
    User,
    UserState,
)
from warmlight.db.session import set_local_statement_timeout, transaction
from warmlight.errors import (
    ErrorCode,
    LibraryNotFoundError,
    MalformedError,
    NotFoundError,
    StaleMigrationError,
)
from warmlight.logging import get_logger
from warmlight.schemas.library import MigrationResult

logger = get_logger(__name__)

# Content tables in dependency order: links first, then the rows they point at
_CONTENT_TABLES = (
    ("quote_tags", QuoteTag),
    ("quote_sources", QuoteSource),
    ("quotes", Quote),
    ("tags", Tag),
    ("sources", Source),
)


def migrate_library(
    db: Session,
    user_id: int,
    current_library_id: int,
    target_library_id: int,
    mode: LibraryChangeMode,
    statement_timeout_ms: int | None = None,
) -> MigrationResult:
    """Move a user from `current_library_id` to `target_library_id`.

    Args:
        db: Database session.
        user_id: The user changing library.
        current_library_id: The library the user belonged to when the dialog started.
        target_library_id: The library being joined.
        mode: Delete or merge the current library's content.
        statement_timeout_ms: Statement timeout for this transaction (PostgreSQL only).

    Returns:
        Counts of the rows deleted or re-scoped.

    Raises:
        MalformedError: If both libraries are the same.
        LibraryNotFoundError: If the target library no longer exists.
        StaleMigrationError: If the user no longer belongs to the current library.
        NotFoundError: If the user does not exist.
        StoreFailureError: On any other store failure (transaction rolled back).
    """
    mode = LibraryChangeMode(mode)
    if current_library_id == target_library_id:
        raise MalformedError(ErrorCode.E_SAME_LIBRARY, "User already belongs to this library")

    result = MigrationResult(
        mode=mode,
        user_id=user_id,
        from_library_id=current_library_id,
        to_library_id=target_library_id,
    )

    try:
        with transaction(db):
            if statement_timeout_ms:
                set_local_statement_timeout(db, statement_timeout_ms)

            target = db.execute(
                select(Library.id).where(Library.id == target_library_id).with_for_update()
            ).scalar_one_or_none()
            if target is None:
                raise LibraryNotFoundError()

            user = db.execute(
                select(User)
                .where(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if user is None:
                raise NotFoundError(ErrorCode.E_USER_NOT_FOUND, f"User {user_id} not found")
            if user.library_id != current_library_id:
                raise StaleMigrationError()

            current = db.execute(
                select(Library)
                .where(Library.id == current_library_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()

            other_members = list(
                db.scalars(
                    select(User.id)
                    .where(User.library_id == current_library_id, User.id != user_id)
                    .order_by(User.id)
                )
            )

            active_source = user.active_source
            if not other_members:
                if mode == LibraryChangeMode.delete:
                    _delete_content(db, current_library_id, result)
                else:
                    renames = _merge_content(db, current_library_id, target_library_id, result)
                    active_source = renames.get(active_source, active_source)

            user_values: dict = {
                "library_id": target_library_id,
                "state": UserState.normal,
                "state_data": None,
            }
            if mode == LibraryChangeMode.delete:
                user_values["active_source"] = None
                user_values["active_source_expire"] = None
            elif active_source != user.active_source:
                user_values["active_source"] = active_source
            db.execute(update(User).where(User.id == user_id).values(**user_values))

            if not other_members:
                db.execute(delete(Library).where(Library.id == current_library_id))
                result.library_deleted = True
            elif current.owner_id == user_id:
                result.new_owner_id = other_members[0]
                db.execute(
                    update(Library)
                    .where(Library.id == current_library_id)
                    .values(owner_id=other_members[0], token=None, token_expires_on=None)
                )
    except IntegrityError as exc:
        # Target row vanished between the lock check and the write
        logger.warning(
            "library_migration_integrity_error",
            user_id=user_id,
            target_library_id=target_library_id,
            error=str(exc.orig),
        )
        raise LibraryNotFoundError() from exc

    logger.info("library_migrated", **result.model_dump(mode="json"))
    return result


def delete_and_migrate(
    db: Session,
    user_id: int,
    current_library_id: int,
    target_library_id: int,
    statement_timeout_ms: int | None = None,
) -> MigrationResult:
    """Delete the user's current library content and move the user to the target."""
    return migrate_library(
        db,
        user_id,
        current_library_id,
        target_library_id,
        LibraryChangeMode.delete,
        statement_timeout_ms=statement_timeout_ms,
    )


def merge_and_migrate(
    db: Session,
    user_id: int,
    current_library_id: int,
    target_library_id: int,
    statement_timeout_ms: int | None = None,
) -> MigrationResult:
    """Merge the user's current library content into the target and move the user there."""
    return migrate_library(
        db,
        user_id,
        current_library_id,
        target_library_id,
        LibraryChangeMode.merge,
        statement_timeout_ms=statement_timeout_ms,
    )


def _delete_content(db: Session, library_id: int, result: MigrationResult) -> None:
    for field, model in _CONTENT_TABLES:
        deleted = db.execute(delete(model).where(model.library_id == library_id))
        setattr(result, field, deleted.rowcount)


def _merge_content(
    db: Session, current_library_id: int, target_library_id: int, result: MigrationResult
) -> dict[str, str]:
    """Re-scope all content to the target library.

    Returns:
        Mapping of renamed source names (old -> new).
    """
    source_renames = _rename_colliding(db, Source, current_library_id, target_library_id)
    tag_renames = _rename_colliding(db, Tag, current_library_id, target_library_id)
    result.renamed_sources = len(source_renames)
    result.renamed_tags = len(tag_renames)

    for old_name, new_name in source_renames.items():
        db.execute(
            update(Quote)
            .where(Quote.library_id == current_library_id, Quote.main_source == old_name)
            .values(main_source=new_name)
        )

    for field, model in _CONTENT_TABLES:
        moved = db.execute(
            update(model)
            .where(model.library_id == current_library_id)
            .values(library_id=target_library_id)
        )
        setattr(result, field, moved.rowcount)

    return source_renames


def _rename_colliding(
    db: Session, model: type[Source] | type[Tag], current_library_id: int, target_library_id: int
) -> dict[str, str]:
    target_names = set(db.scalars(select(model.name).where(model.library_id == target_library_id)))
    rows = db.execute(
        select(model.id, model.name)
        .where(model.library_id == current_library_id)
        .order_by(model.id)
    ).all()
    taken = target_names | {name for _, name in rows}

    renames: dict[str, str] = {}
    for row_id, name in rows:
        if name not in target_names:
            continue
        suffix = 2
        while f"{name} ({suffix})" in taken:
            suffix += 1
        new_name = f"{name} ({suffix})"
        taken.add(new_name)
        db.execute(update(model).where(model.id == row_id).values(name=new_name))
        renames[name] = new_name
    return renames
