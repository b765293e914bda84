# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Age-based purge of audit records.

``critical`` records are kept forever.  Deletion is irreversible.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from nexus_audit.audit.events import ActorContext, AuditAction
from nexus_audit.audit.logger import AuditLogger
from nexus_audit.audit.store import AuditStore
from nexus_audit.core.constants import DEFAULT_RETENTION_DAYS, PROTECTED_SEVERITIES
from nexus_audit.core.exceptions import InvalidRetentionWindowError

logger = logging.getLogger("nexus_audit.audit.retention")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RetentionSweeper:
    """Deletes non-protected audit records older than a retention window."""

    def __init__(
        self,
        store: AuditStore,
        *,
        audit_logger: AuditLogger | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock

    async def sweep(
        self,
        days: int = DEFAULT_RETENTION_DAYS,
        *,
        actor: ActorContext | None = None,
    ) -> int:
        """Delete records older than *days* days and return how many were removed.

        Raises:
            InvalidRetentionWindowError: *days* is not a positive integer.
            StorageError: the delete could not be completed.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidRetentionWindowError(
                f"Retention window must be a positive number of days, got {days!r}"
            )

        cutoff = self._clock() - timedelta(days=days)
        deleted = await self._store.delete_older_than(cutoff, PROTECTED_SEVERITIES)
        logger.info(
            "Retention sweep removed %d audit record(s) older than %s (%d days)",
            deleted,
            cutoff.isoformat(),
            days,
        )

        if deleted and self._audit_logger is not None:
            await self._audit_logger.record(
                AuditAction.LOGS_CLEANED_UP,
                actor=actor,
                metadata={
                    "deleted_count": deleted,
                    "days": days,
                    "cutoff": cutoff.isoformat(),
                },
            )
        return deleted


class RetentionScheduler:
    """Runs :meth:`RetentionSweeper.sweep` periodically as a background task."""

    def __init__(
        self,
        sweeper_factory: Callable[[], Awaitable[RetentionSweeper]],
        *,
        days: int = DEFAULT_RETENTION_DAYS,
        interval_seconds: float = 24 * 3600,
    ) -> None:
        self._sweeper_factory = sweeper_factory
        self._days = days
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Retention scheduler started (days=%d, interval=%ss)", self._days, self._interval
        )

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Retention scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                sweeper = await self._sweeper_factory()
                await sweeper.sweep(self._days)
            except Exception:
                logger.exception("Scheduled retention sweep failed")
            await asyncio.sleep(self._interval)
