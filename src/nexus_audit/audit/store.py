# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Append-only audit event persistence in the SQLite ``audit_log`` table."""

from __future__ import annotations

import contextlib
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import aiosqlite

from nexus_audit.audit.events import AuditEvent, to_storage_timestamp
from nexus_audit.core.constants import MAX_PAGE_SIZE, Severity
from nexus_audit.core.exceptions import InvalidFilterError, StorageError

_COLUMNS = (
    "event_id, created_at, action, description, severity, actor_id, "
    "actor_role, target_id, ip_address, user_agent, metadata"
)


@dataclass(frozen=True, slots=True)
class AuditFilter:
    """Conjunction of optional predicates over audit records.

    ``start``/``end`` bound ``created_at`` inclusively.  ``search`` is a
    case-insensitive substring match on the description.
    """

    action: str | None = None
    severity: Severity | None = None
    actor_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    search: str | None = None

    def to_sql(self) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        if self.action is not None:
            clauses.append("action = ?")
            params.append(self.action)
        if self.severity is not None:
            clauses.append("severity = ?")
            params.append(str(self.severity))
        if self.actor_id is not None:
            clauses.append("actor_id = ?")
            params.append(self.actor_id)
        if self.start is not None:
            clauses.append("created_at >= ?")
            params.append(to_storage_timestamp(self.start))
        if self.end is not None:
            clauses.append("created_at <= ?")
            params.append(to_storage_timestamp(self.end))
        if self.search:
            clauses.append("casefold(description) LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(self.search.casefold())}%")

        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        return where, params


@dataclass(slots=True)
class AuditStats:
    """Aggregate counts over a time window, for dashboard charts."""

    action_counts: list[tuple[str, int]] = field(default_factory=list)
    severity_counts: list[tuple[str, int]] = field(default_factory=list)
    daily_counts: list[tuple[str, int]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(count for _, count in self.action_counts)


class AuditStore:
    """Repository for appending, querying and purging audit events.

    Records are never updated.  Every database failure surfaces as
    :class:`StorageError`.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def append(self, event: AuditEvent) -> int:
        """Persist a single audit event and return its insertion sequence."""
        try:
            cursor = await self._db.execute(
                f"INSERT INTO audit_log ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",  # noqa: S608
                (
                    event.event_id,
                    to_storage_timestamp(event.created_at),
                    str(event.action),
                    event.description,
                    str(event.severity),
                    event.actor_id,
                    str(event.actor_role),
                    event.target_id,
                    event.ip_address,
                    event.user_agent,
                    json.dumps(event.metadata, default=str),
                ),
            )
            await self._db.commit()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"Failed to append audit event: {exc}") from exc
        return int(cursor.lastrowid)

    async def get_by_id(self, event_id: str) -> AuditEvent | None:
        """Retrieve a single audit event by its event ID."""
        try:
            cursor = await self._db.execute(
                "SELECT * FROM audit_log WHERE event_id = ?", (event_id,)
            )
            row = await cursor.fetchone()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"Failed to load audit event {event_id}: {exc}") from exc
        return _row_to_event(row) if row is not None else None

    async def query(
        self,
        criteria: AuditFilter | None = None,
        *,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[AuditEvent], int]:
        """Return one page of matching events (newest first) and the total match count."""
        if page < 1:
            raise InvalidFilterError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise InvalidFilterError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
            )

        where, params = (criteria or AuditFilter()).to_sql()
        offset = (page - 1) * page_size

        try:
            cursor = await self._db.execute(
                f"SELECT COUNT(*) FROM audit_log{where}",  # noqa: S608
                params,
            )
            row = await cursor.fetchone()
            total = int(row[0]) if row else 0

            cursor = await self._db.execute(
                f"SELECT * FROM audit_log{where} "  # noqa: S608
                "ORDER BY created_at DESC, seq DESC LIMIT ? OFFSET ?",
                [*params, page_size, offset],
            )
            rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"Failed to query audit log: {exc}") from exc

        return [_row_to_event(r) for r in rows], total

    async def distinct_actions(self) -> set[str]:
        """Return the action tags actually present in storage."""
        try:
            cursor = await self._db.execute("SELECT DISTINCT action FROM audit_log")
            rows = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"Failed to list audit actions: {exc}") from exc
        return {row[0] for row in rows}

    async def delete_older_than(
        self,
        cutoff: datetime,
        protected_severities: Iterable[Severity] = (),
    ) -> int:
        """Delete records created before *cutoff* whose severity is not protected.

        Runs as a single transaction and returns the number of rows removed.
        """
        protected = sorted(str(s) for s in protected_severities)
        sql = "DELETE FROM audit_log WHERE created_at < ?"
        params: list[Any] = [to_storage_timestamp(cutoff)]
        if protected:
            sql += f" AND severity NOT IN ({', '.join('?' for _ in protected)})"
            params.extend(protected)

        try:
            cursor = await self._db.execute(sql, params)
            deleted = cursor.rowcount
            await self._db.commit()
        except (aiosqlite.Error, ValueError) as exc:
            with contextlib.suppress(aiosqlite.Error, ValueError):
                await self._db.rollback()
            raise StorageError(f"Failed to delete old audit events: {exc}") from exc
        return max(deleted, 0)

    async def stats(self, since: datetime) -> AuditStats:
        """Count events per action, per severity and per UTC day since *since*."""
        bound = to_storage_timestamp(since)
        try:
            cursor = await self._db.execute(
                "SELECT action, COUNT(*) AS n FROM audit_log WHERE created_at >= ? "
                "GROUP BY action ORDER BY n DESC, action ASC",
                (bound,),
            )
            actions = await cursor.fetchall()

            cursor = await self._db.execute(
                "SELECT severity, COUNT(*) AS n FROM audit_log WHERE created_at >= ? "
                "GROUP BY severity ORDER BY n DESC, severity ASC",
                (bound,),
            )
            severities = await cursor.fetchall()

            cursor = await self._db.execute(
                "SELECT substr(created_at, 1, 10) AS day, COUNT(*) AS n FROM audit_log "
                "WHERE created_at >= ? GROUP BY day ORDER BY day ASC",
                (bound,),
            )
            days = await cursor.fetchall()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"Failed to compute audit statistics: {exc}") from exc

        return AuditStats(
            action_counts=[(r[0], int(r[1])) for r in actions],
            severity_counts=[(r[0], int(r[1])) for r in severities],
            daily_counts=[(r[0], int(r[1])) for r in days],
        )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_event(row: aiosqlite.Row) -> AuditEvent:
    """Convert an aiosqlite Row to an AuditEvent, parsing JSON metadata."""
    d = dict(row)
    try:
        metadata = json.loads(d.get("metadata") or "{}")
    except (json.JSONDecodeError, TypeError):
        metadata = {}
    return AuditEvent(
        event_id=d["event_id"],
        seq=d["seq"],
        created_at=datetime.fromisoformat(d["created_at"]),
        action=d["action"],
        description=d["description"],
        severity=d["severity"],
        actor_id=d.get("actor_id"),
        actor_role=d.get("actor_role") or "system",
        target_id=d.get("target_id"),
        ip_address=d.get("ip_address"),
        user_agent=d.get("user_agent"),
        metadata=metadata if isinstance(metadata, dict) else {},
    )
