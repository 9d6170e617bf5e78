"""
Canonical protocol definitions for stratum.

Manifesto:
    The engine never opens connections itself; pool and transaction setup
    belong to the caller. It only needs the *shape* of a DB-API style
    connection, so any object matching the protocol works: ``sqlite3``,
    ``psycopg`` 3, or a recording fake in tests.

Architecture:
    ::

        Connection Protocol:
        ┌────────────────────────────────────────────────────────┐
        │ execute(sql, params)   → cursor (fetchone / fetchall)  │
        │ commit()               → Commit transaction            │
        │ rollback()             → Rollback transaction          │
        └────────────────────────────────────────────────────────┘

Tags:
    protocol, connection, database, stratum
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cursor(Protocol):
    """Result of ``Connection.execute``."""

    def fetchone(self) -> Any:
        ...

    def fetchall(self) -> list:
        ...


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface.

    ``sqlite3.Connection`` and ``psycopg.Connection`` satisfy it natively.
    Drivers whose connections lack ``execute`` need a thin wrapper that
    opens a cursor per call.

    Examples:
        >>> cursor = conn.execute("SELECT name FROM clusters WHERE cluster_id = ?", (1,))
        >>> cursor.fetchone()
        ('c1',)
    """

    def execute(self, sql: str, params: tuple = ()) -> Cursor:
        """Execute SQL statement with optional parameters."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = [
    "Connection",
    "Cursor",
]
