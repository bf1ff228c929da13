"""
Module: stock_kernel.db.dialect
Responsibility: Single-statement building blocks for atomic counter
    mutation on every supported backend.
Architecture position: Kernel > DB.  Used by services that must mutate a
    counter without a read-modify-write race.

Invariants enforced:
    - Atomic increment-and-read: ``dialect_insert(...).on_conflict_do_update``
      with ``RETURNING`` allocates the next value in one statement.
    - Clamped deltas: ``clamped_add`` computes ``max(column + delta, 0)``
      inside the database, so concurrent decrements can never drive a
      counter negative.

Failure modes:
    - ValueError for a dialect without ``INSERT ... ON CONFLICT`` support.
"""

from sqlalchemy import case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: Session, target):
    """
    Return an ``INSERT`` construct that supports ``ON CONFLICT`` for the
    dialect the session is bound to.

    Args:
        session: Session whose bind decides the dialect.
        target: Table or mapped class to insert into.

    Raises:
        ValueError: If the bound dialect has no upsert support.
    """
    name = session.get_bind().dialect.name
    try:
        factory = _INSERT_BY_DIALECT[name]
    except KeyError:
        raise ValueError(f"Dialect {name!r} does not support INSERT ... ON CONFLICT") from None
    return factory(target)


def clamped_add(column, delta: int) -> ColumnElement:
    """SQL expression for ``column + delta`` floored at zero."""
    if delta >= 0:
        return column + delta
    return case((column + delta < 0, 0), else_=column + delta)
