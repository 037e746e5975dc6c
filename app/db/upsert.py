"""
Dialect-native insert-or-update helpers.

PostgreSQL and SQLite both support INSERT .. ON CONFLICT; the statement is built
with the dialect of the session's bind so the same service code runs in
production and against the in-memory test database.
"""
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def _insert_for(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


def upsert(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
    update_columns: Optional[Iterable[str]] = None,
) -> None:
    """
    Insert a row or update it in place when the conflict key already exists.

    Args:
        db: Database session
        model: Mapped class
        values: Column values for the insert
        conflict_columns: Columns of the unique constraint to resolve on
        update_columns: Columns to overwrite on conflict (defaults to every
            value that is not part of the conflict key)
    """
    conflict_columns = list(conflict_columns)
    if update_columns is None:
        update_columns = [key for key in values if key not in conflict_columns]

    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={column: stmt.excluded[column] for column in update_columns},
    )
    db.execute(stmt)


def insert_ignore(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
) -> bool:
    """
    Insert a row unless the conflict key already exists.

    Returns:
        True if a row was inserted
    """
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
    result = db.execute(stmt)
    return result.rowcount == 1
