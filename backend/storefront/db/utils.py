"""Database utility functions shared by the services."""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, table: Any):
    """Return the dialect-specific ``insert()`` that supports ON CONFLICT.

    PostgreSQL in production and SQLite in tests both implement
    ``on_conflict_do_update``; the generic insert does not.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise ValueError(f"Upsert is not supported on the '{dialect}' dialect")
