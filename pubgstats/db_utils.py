"""Database utility functions for cross-database compatibility."""

import logging
from typing import Any, TypeVar

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dialect_insert(session: AsyncSession, model: type[T]):
    """Pick the INSERT construct that supports ON CONFLICT for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


async def upsert(
    session: AsyncSession,
    model: type[T],
    values: dict[str, Any],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> None:
    """
    Insert a row, or overwrite it when the conflict columns already exist.

    Both PostgreSQL and SQLite support INSERT ... ON CONFLICT, which keeps two
    concurrent ingestions of the same row from racing without explicit locks.

    Args:
        session: AsyncSession instance
        model: SQLModel table class
        values: Dictionary of column values to insert/update
        conflict_columns: Columns that define uniqueness (for conflict detection)
        update_columns: Columns to overwrite on conflict (defaults to all non-conflict columns)

    Example:
        await upsert(
            session,
            MatchRoster,
            {"roster_id": "r1", "match_id": "m1", "rank": 1},
            conflict_columns=["roster_id"],
        )
    """
    if update_columns is None:
        update_columns = [k for k in values.keys() if k not in conflict_columns]

    stmt = _dialect_insert(session, model).values(**values)
    if update_columns:
        update_dict = {col: getattr(stmt.excluded, col) for col in update_columns}
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_=update_dict,
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)

    await session.execute(stmt)


async def insert_ignore(
    session: AsyncSession,
    model: type[T],
    values: dict[str, Any],
    conflict_columns: list[str],
) -> None:
    """INSERT ... ON CONFLICT DO NOTHING."""
    await upsert(session, model, values, conflict_columns, update_columns=[])
