# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Translate inbound filter parameters into store queries and result envelopes."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

from nexus_audit.audit.events import AuditEvent
from nexus_audit.audit.store import AuditFilter, AuditStats, AuditStore
from nexus_audit.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Severity
from nexus_audit.core.exceptions import InvalidFilterError


class AuditQuery(BaseModel):
    """Filter and pagination parameters as received from the HTTP layer."""

    action: str | None = None
    severity: str | None = None
    actor_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    search: str | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


class Pagination(BaseModel):
    current: int
    pages: int
    total: int


class AuditPage(BaseModel):
    records: list[AuditEvent] = Field(default_factory=list)
    pagination: Pagination


def total_pages(total: int, page_size: int) -> int:
    if total == 0:
        return 0
    return math.ceil(total / page_size)


def parse_timestamp(value: str, field_name: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidFilterError(f"{field_name} is not an ISO-8601 date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class QueryService:
    """Validates query parameters and assembles paginated audit views.

    Out-of-range values are rejected with :class:`InvalidFilterError`
    rather than clamped.
    """

    def __init__(self, store: AuditStore, *, max_page_size: int = MAX_PAGE_SIZE) -> None:
        self._store = store
        self._max_page_size = min(max_page_size, MAX_PAGE_SIZE)

    def build_filter(self, query: AuditQuery) -> AuditFilter:
        if query.page < 1:
            raise InvalidFilterError(f"page must be >= 1, got {query.page}")
        if not 1 <= query.page_size <= self._max_page_size:
            raise InvalidFilterError(
                f"page_size must be between 1 and {self._max_page_size}, got {query.page_size}"
            )

        severity: Severity | None = None
        if query.severity:
            try:
                severity = Severity(query.severity.lower())
            except ValueError as exc:
                raise InvalidFilterError(f"Unknown severity: {query.severity!r}") from exc

        start = parse_timestamp(query.start_date, "start_date") if query.start_date else None
        end = parse_timestamp(query.end_date, "end_date") if query.end_date else None
        if start is not None and end is not None and start > end:
            raise InvalidFilterError("start_date must not be after end_date")

        return AuditFilter(
            action=query.action or None,
            severity=severity,
            actor_id=query.actor_id or None,
            start=start,
            end=end,
            search=query.search or None,
        )

    async def search(self, query: AuditQuery) -> AuditPage:
        criteria = self.build_filter(query)
        records, total = await self._store.query(
            criteria, page=query.page, page_size=query.page_size
        )
        return AuditPage(
            records=records,
            pagination=Pagination(
                current=query.page,
                pages=total_pages(total, query.page_size),
                total=total,
            ),
        )

    async def actions(self) -> list[str]:
        """Distinct action tags present in storage, sorted for display."""
        return sorted(await self._store.distinct_actions())

    async def stats(self, days: int = 30) -> AuditStats:
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidFilterError(f"days must be a positive integer, got {days!r}")
        since = datetime.now(UTC) - timedelta(days=days)
        return await self._store.stats(since)
