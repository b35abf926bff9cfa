"""Dialect-aware statements for atomic set membership and upserts."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Insert, and_, exists, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _dialect_insert(db: Session, model: type[Any]) -> Insert | None:
    factory = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    return factory(model.__table__) if factory is not None else None


def insert_ignore(db: Session, model: type[Any], values: dict[str, Any]) -> bool:
    """Insert a row unless one with the same key exists.

    Returns True if this call inserted the row. On PostgreSQL and SQLite the
    check and insert are one statement, so concurrent writers cannot both
    insert nor overwrite one another.
    """
    stmt = _dialect_insert(db, model)
    if stmt is not None:
        result = db.execute(stmt.values(**values).on_conflict_do_nothing())  # type: ignore[attr-defined]
        return bool(result.rowcount)

    table = model.__table__
    key = [column for column in table.primary_key.columns]
    clause = and_(*(column == values[column.name] for column in key))
    if db.execute(select(exists().where(clause))).scalar():
        return False
    db.execute(insert(model.__table__).values(**values))
    return True


def upsert(
    db: Session,
    model: type[Any],
    values: dict[str, Any],
    key: Sequence[str],
) -> None:
    """Insert ``values`` or overwrite the non-key columns of the existing row."""
    changes = {name: value for name, value in values.items() if name not in key}
    stmt = _dialect_insert(db, model)
    if stmt is not None:
        stmt = stmt.values(**values)
        db.execute(
            stmt.on_conflict_do_update(index_elements=list(key), set_=changes)  # type: ignore[attr-defined]
        )
        return

    table = model.__table__
    clause = and_(*(table.c[name] == values[name] for name in key))
    result = db.execute(update(table).where(clause).values(**changes))
    if not result.rowcount:
        db.execute(insert(model.__table__).values(**values))
