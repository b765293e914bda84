# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Process-wide aiosqlite connection for the audit store."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from nexus_audit.core.exceptions import StorageError
from nexus_audit.storage.migrations import run_migrations

_db: aiosqlite.Connection | None = None

# WAL lets dashboard reads run while request handlers append.
_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
)


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


async def register_functions(conn: aiosqlite.Connection) -> None:
    """Register the SQL functions audit queries rely on.

    SQLite only folds ASCII case in LIKE, so searches compare
    ``casefold(description)`` against a casefolded pattern.
    """
    await conn.create_function("casefold", 1, _casefold, deterministic=True)


async def init_db(
    db_path: Path | str = "nexus_audit.db",
    *,
    auto_migrate: bool = True,
) -> aiosqlite.Connection:
    """Open (once) the audit database and return the shared connection.

    Pending schema migrations are applied unless *auto_migrate* is False.
    Any failure is raised as :class:`StorageError`.
    """
    global _db

    if _db is not None:
        return _db

    conn: aiosqlite.Connection | None = None
    try:
        conn = await aiosqlite.connect(str(db_path))
        conn.row_factory = aiosqlite.Row
        for pragma in _PRAGMAS:
            await conn.execute(pragma)
        await register_functions(conn)
        if auto_migrate:
            await run_migrations(conn)
    except (aiosqlite.Error, OSError, ValueError) as exc:
        if conn is not None:
            await conn.close()
        raise StorageError(f"Failed to open audit database at {db_path}: {exc}") from exc

    _db = conn
    return _db


async def get_db() -> aiosqlite.Connection:
    """Return the shared connection; raises StorageError before :func:`init_db`."""
    if _db is None:
        raise StorageError("Audit database not initialized. Call init_db() first.")
    return _db


async def close_db() -> None:
    global _db

    if _db is not None:
        await _db.close()
        _db = None
