# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Audit event data model and the canonical action tag registry."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from nexus_audit.core.constants import ActorRole, Severity

if TYPE_CHECKING:
    from starlette.requests import Request


class AuditAction(StrEnum):
    """Every action tag the ERP reports into the audit trail."""

    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    UNAUTHORIZED_ACCESS = "unauthorized_access"

    # Users
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_STATUS_CHANGED = "user_status_changed"

    # Departments
    DEPARTMENT_CREATED = "department_created"
    DEPARTMENT_UPDATED = "department_updated"
    DEPARTMENT_DELETED = "department_deleted"

    # Tasks
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_STATUS_CHANGED = "task_status_changed"

    # Attendance
    ATTENDANCE_CHECKED_IN = "attendance_checked_in"
    ATTENDANCE_CHECKED_OUT = "attendance_checked_out"
    ATTENDANCE_UPDATED = "attendance_updated"
    ATTENDANCE_DELETED = "attendance_deleted"

    # Leave / expense / support requests
    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_UPDATED = "request_updated"
    REQUEST_STATUS_CHANGED = "request_status_changed"
    REQUEST_DELETED = "request_deleted"

    # Documents
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_DOWNLOADED = "document_downloaded"
    DOCUMENT_DELETED = "document_deleted"

    # System
    SYSTEM_LOGIN = "system_login"
    SYSTEM_LOGOUT = "system_logout"
    SYSTEM_ERROR = "system_error"
    SYSTEM_SETTINGS_UPDATED = "system_settings_updated"
    LOGS_CLEANED_UP = "logs_cleaned_up"

    # HTTP traffic
    REQUEST_RECEIVED = "request_received"
    REQUEST_COMPLETED = "request_completed"


def is_known_action(action: str) -> bool:
    return action in AuditAction._value2member_map_


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_storage_timestamp(value: datetime) -> str:
    """Render a timestamp as fixed-width UTC ISO-8601 text.

    Naive datetimes are taken to be UTC.  The fixed width keeps SQL text
    comparison in chronological order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class ActorContext(BaseModel):
    """Who performed an action, captured at the time it happened."""

    model_config = ConfigDict(frozen=True)

    actor_id: str | None = None
    role: ActorRole = ActorRole.SYSTEM
    email: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def system(cls) -> ActorContext:
        return cls()

    @classmethod
    def from_request(
        cls,
        request: Request,
        *,
        actor_id: str | None = None,
        role: ActorRole | str | None = None,
        email: str | None = None,
    ) -> ActorContext:
        """Build an actor context from an inbound HTTP request.

        The first ``X-Forwarded-For`` hop wins over the socket peer address.
        Without an *actor_id* the role is always ``system``.
        """
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            ip_address: str | None = forwarded.split(",")[0].strip()
        else:
            ip_address = request.client.host if request.client else None

        resolved_role = ActorRole(role) if (role and actor_id) else ActorRole.SYSTEM
        return cls(
            actor_id=actor_id,
            role=resolved_role,
            email=email,
            ip_address=ip_address,
            user_agent=request.headers.get("user-agent"),
        )


class AuditEvent(BaseModel):
    """A single immutable audit record.

    ``seq`` is assigned by the store on append and breaks ties between
    records sharing the same ``created_at``.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    seq: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    action: str
    description: str
    severity: Severity
    actor_id: str | None = None
    actor_role: ActorRole = ActorRole.SYSTEM
    target_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
