# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Versioned database migrations for the audit store.

Applied versions are tracked in a ``schema_migrations`` table.  Each
migration is idempotent and committed before its version is recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Migration registry infrastructure
# ---------------------------------------------------------------------------

MigrationFunc = Callable[[aiosqlite.Connection], Coroutine[Any, Any, None]]


@dataclass(frozen=True, slots=True)
class Migration:
    """A single database migration."""

    version: int
    name: str
    func: MigrationFunc


# Ordered list of all migrations.  New migrations are appended here.
_MIGRATIONS: list[Migration] = []


def _register(version: int, name: str) -> Callable[[MigrationFunc], MigrationFunc]:
    """Decorator that registers a migration function."""

    def decorator(fn: MigrationFunc) -> MigrationFunc:
        _MIGRATIONS.append(Migration(version=version, name=name, func=fn))
        return fn

    return decorator


_CREATE_SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


async def _ensure_migrations_table(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_SCHEMA_MIGRATIONS)
    await db.commit()


async def get_current_version(db: aiosqlite.Connection) -> int:
    """Return the highest applied migration version, or 0 if none."""
    await _ensure_migrations_table(db)
    cursor = await db.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_migrations"
    )
    row = await cursor.fetchone()
    return int(row[0]) if row else 0


async def get_pending_migrations(db: aiosqlite.Connection) -> list[Migration]:
    """Return migrations that have not yet been applied."""
    current = await get_current_version(db)
    return [m for m in _MIGRATIONS if m.version > current]


async def run_migrations(db: aiosqlite.Connection) -> list[Migration]:
    """Run all pending migrations in order and return those applied."""
    await _ensure_migrations_table(db)

    current = await get_current_version(db)
    applied: list[Migration] = []

    for migration in _MIGRATIONS:
        if migration.version <= current:
            continue

        logger.info(
            "Applying migration %03d: %s", migration.version, migration.name
        )

        await migration.func(db)

        await db.execute(
            "INSERT OR IGNORE INTO schema_migrations (version, name) VALUES (?, ?)",
            (migration.version, migration.name),
        )
        await db.commit()

        applied.append(migration)
        logger.info("Migration %03d applied successfully.", migration.version)

    return applied


# =========================================================================
# Migration 001 -- audit_log table
# =========================================================================

# seq doubles as the insertion-order tie breaker for equal created_at values.
# created_at is stored as a fixed-width UTC ISO string so that text
# comparison matches chronological order.
_CREATE_AUDIT_LOG = """
CREATE TABLE IF NOT EXISTS audit_log (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    action TEXT NOT NULL,
    description TEXT NOT NULL,
    severity TEXT NOT NULL,
    actor_id TEXT,
    actor_role TEXT NOT NULL DEFAULT 'system',
    target_id TEXT,
    ip_address TEXT,
    user_agent TEXT,
    metadata TEXT NOT NULL DEFAULT '{}'
);
"""

_AUDIT_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_audit_created_at ON audit_log(created_at DESC, seq DESC);",
    "CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log(action);",
    "CREATE INDEX IF NOT EXISTS idx_audit_actor_id ON audit_log(actor_id);",
    "CREATE INDEX IF NOT EXISTS idx_audit_severity ON audit_log(severity);",
]


@_register(1, "audit_log")
async def _migration_001_audit_log(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_AUDIT_LOG)
    for stmt in _AUDIT_INDEXES:
        await db.execute(stmt)
    await db.commit()


# =========================================================================
# Migration 002 -- composite index for retention sweeps
# =========================================================================


@_register(2, "audit_retention_index")
async def _migration_002_retention_index(db: aiosqlite.Connection) -> None:
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_severity_created "
        "ON audit_log(severity, created_at);"
    )
    await db.commit()
