"""
Insert-if-absent primitive.

Duplicate deliveries race on unique constraints; instead of catching the
driver's unique-violation error, rows are inserted with ON CONFLICT DO
NOTHING and the surviving row is read back by its conflict keys.
"""

from __future__ import annotations

import uuid
from typing import Any, Sequence, Tuple, Type, TypeVar

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

T = TypeVar("T")


def _insert_for(db: Session, table):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"insert_if_absent is not supported on {dialect}")


def insert_if_absent(
    db: Session,
    model: Type[T],
    conflict_keys: Sequence[str],
    values: dict[str, Any],
) -> Tuple[T, bool]:
    """
    Insert a row unless one with the same conflict keys exists.

    Returns (row, created). The session is flushed but not committed.
    """
    values = dict(values)
    generated_id = values.setdefault("id", uuid.uuid4())
    stmt = (
        _insert_for(db, model.__table__)
        .values(**_column_values(model, values))
        .on_conflict_do_nothing(index_elements=list(conflict_keys))
    )
    db.execute(stmt)
    filters = [getattr(model, key) == values[key] for key in conflict_keys]
    row = db.query(model).filter(*filters).populate_existing().one()
    return row, row.id == generated_id


def _column_values(model, values: dict[str, Any]) -> dict[str, Any]:
    """Map attribute names (e.g. metadata_) to column names (metadata)."""
    mapper = model.__mapper__
    out: dict[str, Any] = {}
    for key, value in values.items():
        prop = mapper.attrs[key]
        out[prop.columns[0].key] = value
    return out
