# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Centralized audit logger: the single entry point for recording events.

The logger provides fire-and-forget semantics.  A failure to persist an
event is logged, counted and swallowed so it never fails the caller's
own operation.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from nexus_audit.audit.classifier import classify
from nexus_audit.audit.events import ActorContext, AuditAction, AuditEvent, is_known_action
from nexus_audit.audit.store import AuditStore
from nexus_audit.core.constants import Severity

_logger = logging.getLogger("nexus_audit.audit")

StoreProvider = Callable[[], Awaitable[AuditStore]]

# Module-level singleton
_audit_logger: AuditLogger | None = None


async def _default_store() -> AuditStore:
    from nexus_audit.storage.database import get_db

    return AuditStore(await get_db())


class AuditLogger:
    """Records audit events to the audit store and an optional JSONL mirror."""

    def __init__(
        self,
        *,
        store_provider: StoreProvider | None = None,
        log_dir: Path | None = None,
    ) -> None:
        self._store_provider = store_provider or _default_store
        self._log_dir = log_dir
        if self._log_dir is not None:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        self.failure_count = 0
        self._pending: set[asyncio.Task[AuditEvent]] = set()

    async def record(
        self,
        action: AuditAction | str,
        description: str | None = None,
        actor: ActorContext | None = None,
        metadata: Mapping[str, Any] | None = None,
        *,
        severity: Severity | str | None = None,
        target_id: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> AuditEvent | None:
        """Record one event and return it, or ``None`` if it could not be stored.

        *context* feeds the description template when no *description* is
        given; it defaults to *metadata*.  *severity* overrides the
        classifier.
        """
        try:
            event = self._build_event(
                action, description, actor, metadata,
                severity=severity, target_id=target_id, context=context,
            )
        except Exception:
            self.failure_count += 1
            _logger.exception("Failed to build audit event for action=%s", action)
            return None

        self._write_json_log(event)

        # The write outlives a cancelled caller; its outcome is accounted
        # for in the done callback either way.
        task = asyncio.create_task(self._persist(event))
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._on_persisted, event))
        try:
            event = await asyncio.shield(task)
        except Exception:
            return None

        _logger.info(
            "audit event=%s action=%s severity=%s actor=%s",
            event.event_id,
            event.action,
            event.severity,
            event.actor_id or "system",
            extra={
                "event_id": event.event_id,
                "action": event.action,
                "severity": str(event.severity),
                "actor_id": event.actor_id,
            },
        )
        return event

    def _build_event(
        self,
        action: AuditAction | str,
        description: str | None,
        actor: ActorContext | None,
        metadata: Mapping[str, Any] | None,
        *,
        severity: Severity | str | None,
        target_id: str | None,
        context: Mapping[str, Any] | None,
    ) -> AuditEvent:
        action = str(action)
        if not is_known_action(action):
            _logger.warning("Recording unregistered audit action %r", action)
        actor = actor or ActorContext.system()
        meta = dict(metadata or {})

        template_context: dict[str, Any] = {
            "actor_email": actor.email or actor.actor_id or "system",
            "ip_address": actor.ip_address or "unknown",
        }
        template_context.update(context if context is not None else meta)

        classification = classify(action, template_context, description)
        return AuditEvent(
            action=action,
            description=classification.description,
            severity=Severity(severity) if severity else classification.severity,
            actor_id=actor.actor_id,
            actor_role=actor.role if actor.actor_id else "system",
            target_id=target_id,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            metadata=meta,
        )

    async def _persist(self, event: AuditEvent) -> AuditEvent:
        store = await self._store_provider()
        seq = await store.append(event)
        return event.model_copy(update={"seq": seq})

    def _on_persisted(self, event: AuditEvent, task: asyncio.Task[AuditEvent]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            self.failure_count += 1
            _logger.error(
                "Audit write for event %s (action=%s) was cancelled", event.event_id, event.action
            )
            return
        exc = task.exception()
        if exc is not None:
            self.failure_count += 1
            _logger.error(
                "Failed to persist audit event %s (action=%s)",
                event.event_id,
                event.action,
                exc_info=exc,
            )

    def _write_json_log(self, event: AuditEvent) -> None:
        """Append a single JSON line to the daily audit log file."""
        if self._log_dir is None:
            return
        try:
            today = datetime.now(UTC).strftime("%Y-%m-%d")
            log_file = self._log_dir / f"audit-{today}.jsonl"
            line = json.dumps(event.model_dump(mode="json"), default=str)
            with log_file.open("a") as fh:
                fh.write(line + "\n")
        except Exception:
            self.failure_count += 1
            _logger.exception("Failed to write JSON audit log")

    # -----------------------------------------------------------------
    # Authentication
    # -----------------------------------------------------------------

    async def login_success(self, actor: ActorContext, email: str) -> AuditEvent | None:
        return await self.record(
            AuditAction.LOGIN_SUCCESS,
            actor=actor,
            target_id=actor.actor_id,
            metadata={"user_id": actor.actor_id, "email": email},
        )

    async def login_failed(
        self, email: str, reason: str, *, actor: ActorContext | None = None
    ) -> AuditEvent | None:
        """Log a failed login.  The attempt is attributed to ``system``."""
        return await self.record(
            AuditAction.LOGIN_FAILED,
            actor=actor,
            metadata={"email": email, "reason": reason},
        )

    async def logout(self, actor: ActorContext, email: str) -> AuditEvent | None:
        return await self.record(
            AuditAction.LOGOUT,
            actor=actor,
            metadata={"user_id": actor.actor_id, "email": email},
        )

    async def unauthorized_access(
        self, actor: ActorContext, attempted_action: str
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.UNAUTHORIZED_ACCESS,
            actor=actor,
            metadata={
                "attempted_action": attempted_action,
                "ip_address": actor.ip_address,
                "user_agent": actor.user_agent,
            },
        )

    # -----------------------------------------------------------------
    # Entity lifecycle (users, departments, tasks, requests, documents)
    # -----------------------------------------------------------------

    async def entity_created(
        self,
        action: AuditAction,
        actor: ActorContext,
        entity_id: str,
        **fields: Any,
    ) -> AuditEvent | None:
        return await self.record(
            action,
            actor=actor,
            target_id=entity_id,
            metadata={"entity_id": entity_id, "created_by": actor.actor_id, **fields},
        )

    async def entity_updated(
        self,
        action: AuditAction,
        actor: ActorContext,
        entity_id: str,
        changes: Mapping[str, Any],
        **fields: Any,
    ) -> AuditEvent | None:
        """Log an update.  *changes* holds the before/after values per field."""
        return await self.record(
            action,
            actor=actor,
            target_id=entity_id,
            metadata={
                "entity_id": entity_id,
                "changes": dict(changes),
                "updated_by": actor.actor_id,
                **fields,
            },
            context={**fields, "changes": json.dumps(dict(changes), default=str)},
        )

    async def entity_deleted(
        self,
        action: AuditAction,
        actor: ActorContext,
        entity_id: str,
        **fields: Any,
    ) -> AuditEvent | None:
        return await self.record(
            action,
            actor=actor,
            target_id=entity_id,
            metadata={"entity_id": entity_id, "deleted_by": actor.actor_id, **fields},
        )

    async def status_changed(
        self,
        action: AuditAction,
        actor: ActorContext,
        entity_id: str,
        old_status: str,
        new_status: str,
        **fields: Any,
    ) -> AuditEvent | None:
        return await self.record(
            action,
            actor=actor,
            target_id=entity_id,
            metadata={
                "entity_id": entity_id,
                "old_status": old_status,
                "new_status": new_status,
                "changed_by": actor.actor_id,
                **fields,
            },
        )

    # -----------------------------------------------------------------
    # Named wrappers per domain
    # -----------------------------------------------------------------

    async def user_created(
        self,
        actor: ActorContext,
        user_id: str,
        *,
        name: str,
        email: str,
        role: str,
        department: str | None = None,
    ) -> AuditEvent | None:
        return await self.entity_created(
            AuditAction.USER_CREATED, actor, user_id,
            name=name, email=email, role=role, department=department,
        )

    async def user_updated(
        self, actor: ActorContext, user_id: str, *, name: str, changes: Mapping[str, Any]
    ) -> AuditEvent | None:
        return await self.entity_updated(
            AuditAction.USER_UPDATED, actor, user_id, changes, name=name
        )

    async def user_deleted(
        self, actor: ActorContext, user_id: str, *, name: str, email: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(
            AuditAction.USER_DELETED, actor, user_id, name=name, email=email
        )

    async def user_status_changed(
        self, actor: ActorContext, user_id: str, *, name: str, active: bool
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.USER_STATUS_CHANGED,
            actor=actor,
            target_id=user_id,
            metadata={"entity_id": user_id, "new_status": active, "changed_by": actor.actor_id},
            context={"name": name, "status": "active" if active else "inactive"},
        )

    async def department_created(
        self, actor: ActorContext, department_id: str, *, department_name: str
    ) -> AuditEvent | None:
        return await self.entity_created(
            AuditAction.DEPARTMENT_CREATED, actor, department_id,
            department_name=department_name,
        )

    async def department_updated(
        self,
        actor: ActorContext,
        department_id: str,
        *,
        department_name: str,
        changes: Mapping[str, Any],
    ) -> AuditEvent | None:
        return await self.entity_updated(
            AuditAction.DEPARTMENT_UPDATED, actor, department_id, changes,
            department_name=department_name,
        )

    async def department_deleted(
        self, actor: ActorContext, department_id: str, *, department_name: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(
            AuditAction.DEPARTMENT_DELETED, actor, department_id,
            department_name=department_name,
        )

    async def task_created(
        self, actor: ActorContext, task_id: str, *, title: str, assignee: str
    ) -> AuditEvent | None:
        return await self.entity_created(
            AuditAction.TASK_CREATED, actor, task_id, title=title, assignee=assignee
        )

    async def task_updated(
        self, actor: ActorContext, task_id: str, *, title: str, changes: Mapping[str, Any]
    ) -> AuditEvent | None:
        return await self.entity_updated(
            AuditAction.TASK_UPDATED, actor, task_id, changes, title=title
        )

    async def task_deleted(
        self, actor: ActorContext, task_id: str, *, title: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(AuditAction.TASK_DELETED, actor, task_id, title=title)

    async def task_status_changed(
        self,
        actor: ActorContext,
        task_id: str,
        *,
        title: str,
        old_status: str,
        new_status: str,
    ) -> AuditEvent | None:
        return await self.status_changed(
            AuditAction.TASK_STATUS_CHANGED, actor, task_id, old_status, new_status,
            title=title,
        )

    async def attendance_checked_in(
        self, actor: ActorContext, attendance_id: str, *, check_in: datetime
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.ATTENDANCE_CHECKED_IN,
            actor=actor,
            target_id=attendance_id,
            metadata={"entity_id": attendance_id, "check_in": check_in.isoformat()},
        )

    async def attendance_checked_out(
        self,
        actor: ActorContext,
        attendance_id: str,
        *,
        check_out: datetime,
        hours_worked: float,
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.ATTENDANCE_CHECKED_OUT,
            actor=actor,
            target_id=attendance_id,
            metadata={
                "entity_id": attendance_id,
                "check_out": check_out.isoformat(),
                "hours_worked": hours_worked,
            },
        )

    async def attendance_updated(
        self,
        actor: ActorContext,
        attendance_id: str,
        *,
        employee: str,
        changes: Mapping[str, Any],
    ) -> AuditEvent | None:
        return await self.entity_updated(
            AuditAction.ATTENDANCE_UPDATED, actor, attendance_id, changes, employee=employee
        )

    async def attendance_deleted(
        self, actor: ActorContext, attendance_id: str, *, employee: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(
            AuditAction.ATTENDANCE_DELETED, actor, attendance_id, employee=employee
        )

    async def request_submitted(
        self, actor: ActorContext, request_id: str, *, request_type: str, subject: str
    ) -> AuditEvent | None:
        return await self.entity_created(
            AuditAction.REQUEST_SUBMITTED, actor, request_id,
            request_type=request_type, subject=subject,
        )

    async def request_status_changed(
        self,
        actor: ActorContext,
        request_id: str,
        *,
        request_ref: str,
        old_status: str,
        new_status: str,
    ) -> AuditEvent | None:
        return await self.status_changed(
            AuditAction.REQUEST_STATUS_CHANGED, actor, request_id, old_status, new_status,
            request_ref=request_ref,
        )

    async def request_deleted(
        self, actor: ActorContext, request_id: str, *, request_ref: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(
            AuditAction.REQUEST_DELETED, actor, request_id, request_ref=request_ref
        )

    async def document_uploaded(
        self, actor: ActorContext, document_id: str, *, title: str, category: str = ""
    ) -> AuditEvent | None:
        return await self.entity_created(
            AuditAction.DOCUMENT_UPLOADED, actor, document_id, title=title, category=category
        )

    async def document_downloaded(
        self, actor: ActorContext, document_id: str, *, title: str
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.DOCUMENT_DOWNLOADED,
            actor=actor,
            target_id=document_id,
            metadata={"entity_id": document_id, "title": title},
        )

    async def document_deleted(
        self, actor: ActorContext, document_id: str, *, title: str
    ) -> AuditEvent | None:
        return await self.entity_deleted(
            AuditAction.DOCUMENT_DELETED, actor, document_id, title=title
        )

    # -----------------------------------------------------------------
    # System
    # -----------------------------------------------------------------

    async def system_error(
        self, error: BaseException, context: str, *, actor: ActorContext | None = None
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.SYSTEM_ERROR,
            actor=actor,
            metadata={
                "error": str(error),
                "error_type": type(error).__name__,
                "context": context,
            },
        )

    async def settings_updated(
        self, actor: ActorContext, changes: Mapping[str, Any]
    ) -> AuditEvent | None:
        return await self.record(
            AuditAction.SYSTEM_SETTINGS_UPDATED,
            actor=actor,
            metadata={"changes": dict(changes), "updated_by": actor.actor_id},
            context={"changes": json.dumps(dict(changes), default=str)},
        )


def get_audit_logger() -> AuditLogger:
    """Return the module-level AuditLogger singleton."""
    global _audit_logger
    if _audit_logger is None:
        from nexus_audit.core.config import get_settings

        _audit_logger = AuditLogger(log_dir=get_settings().audit_log_dir)
    return _audit_logger


def set_audit_logger(logger: AuditLogger | None) -> None:
    """Replace the module-level AuditLogger singleton (useful for testing)."""
    global _audit_logger
    _audit_logger = logger
