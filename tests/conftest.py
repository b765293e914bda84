# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared test fixtures and configuration."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import pytest

from nexus_audit.audit.events import AuditEvent
from nexus_audit.audit.store import AuditStore
from nexus_audit.core.constants import Severity
from nexus_audit.storage.database import register_functions
from nexus_audit.storage.migrations import run_migrations


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset module-level singletons (DB connection, audit logger, hub) between tests."""
    import nexus_audit.storage.database as db_mod
    from nexus_audit.audit.logger import set_audit_logger
    from nexus_audit.notifications.hub import set_notification_hub

    db_mod._db = None
    set_audit_logger(None)
    set_notification_hub(None)
    yield
    db_mod._db = None
    set_audit_logger(None)
    set_notification_hub(None)


@pytest.fixture
async def audit_db(tmp_path):
    """Create a temporary SQLite database with the audit schema applied."""
    db = await aiosqlite.connect(str(tmp_path / "test_audit.db"))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await register_functions(db)
    await run_migrations(db)
    yield db
    await db.close()


@pytest.fixture
async def store(audit_db) -> AuditStore:
    return AuditStore(audit_db)


def _make_event(
    action: str = "task_created",
    *,
    severity: Severity | str = Severity.LOW,
    created_at: datetime | None = None,
    description: str | None = None,
    **fields: Any,
) -> AuditEvent:
    """Build an AuditEvent with sensible defaults for store-level tests."""
    return AuditEvent(
        action=action,
        severity=severity,
        description=description or action.replace("_", " "),
        created_at=created_at or datetime.now(UTC),
        **fields,
    )


@pytest.fixture
def make_event():
    """Factory for AuditEvents with sensible defaults for store-level tests."""
    return _make_event
