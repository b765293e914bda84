# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Deterministic action -> (description, severity) classification.

Severity is always derived from the action tag so that the same kind of
event is triaged identically no matter which route reported it.
"""

from __future__ import annotations

import logging
import string
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from nexus_audit.audit.events import AuditAction
from nexus_audit.core.constants import Severity

logger = logging.getLogger("nexus_audit.audit.classifier")

A = AuditAction

SEVERITY_MAP: dict[AuditAction, Severity] = {
    A.LOGIN_SUCCESS: Severity.LOW,
    A.LOGIN_FAILED: Severity.MEDIUM,
    A.LOGOUT: Severity.LOW,
    A.UNAUTHORIZED_ACCESS: Severity.HIGH,
    A.USER_CREATED: Severity.MEDIUM,
    A.USER_UPDATED: Severity.LOW,
    A.USER_DELETED: Severity.HIGH,
    A.USER_STATUS_CHANGED: Severity.MEDIUM,
    A.DEPARTMENT_CREATED: Severity.MEDIUM,
    A.DEPARTMENT_UPDATED: Severity.LOW,
    A.DEPARTMENT_DELETED: Severity.HIGH,
    A.TASK_CREATED: Severity.LOW,
    A.TASK_UPDATED: Severity.LOW,
    A.TASK_DELETED: Severity.MEDIUM,
    A.TASK_STATUS_CHANGED: Severity.LOW,
    A.ATTENDANCE_CHECKED_IN: Severity.LOW,
    A.ATTENDANCE_CHECKED_OUT: Severity.LOW,
    A.ATTENDANCE_UPDATED: Severity.LOW,
    A.ATTENDANCE_DELETED: Severity.MEDIUM,
    A.REQUEST_SUBMITTED: Severity.LOW,
    A.REQUEST_APPROVED: Severity.LOW,
    A.REQUEST_REJECTED: Severity.LOW,
    A.REQUEST_UPDATED: Severity.LOW,
    A.REQUEST_STATUS_CHANGED: Severity.LOW,
    A.REQUEST_DELETED: Severity.MEDIUM,
    A.DOCUMENT_UPLOADED: Severity.LOW,
    A.DOCUMENT_DOWNLOADED: Severity.LOW,
    A.DOCUMENT_DELETED: Severity.MEDIUM,
    A.SYSTEM_LOGIN: Severity.LOW,
    A.SYSTEM_LOGOUT: Severity.LOW,
    A.SYSTEM_ERROR: Severity.HIGH,
    A.SYSTEM_SETTINGS_UPDATED: Severity.MEDIUM,
    A.LOGS_CLEANED_UP: Severity.HIGH,
    A.REQUEST_RECEIVED: Severity.LOW,
    A.REQUEST_COMPLETED: Severity.LOW,
}

DEFAULT_SEVERITY = Severity.LOW

DESCRIPTION_TEMPLATES: dict[AuditAction, str] = {
    A.LOGIN_SUCCESS: "User {email} logged in successfully",
    A.LOGIN_FAILED: "Failed login attempt for {email}: {reason}",
    A.LOGOUT: "User {email} logged out",
    A.UNAUTHORIZED_ACCESS: "Unauthorized access attempt to {attempted_action} from IP: {ip_address}",
    A.USER_CREATED: "User {name} ({email}) created with role: {role}",
    A.USER_UPDATED: "User {name} updated - Changes: {changes}",
    A.USER_DELETED: "User {name} ({email}) deleted by {actor_email}",
    A.USER_STATUS_CHANGED: "User {name} status changed to {status} by {actor_email}",
    A.DEPARTMENT_CREATED: "Department {department_name} created by {actor_email}",
    A.DEPARTMENT_UPDATED: "Department {department_name} updated by {actor_email} - Changes: {changes}",
    A.DEPARTMENT_DELETED: "Department {department_name} deleted by {actor_email}",
    A.TASK_CREATED: 'Task "{title}" created and assigned to {assignee} by {actor_email}',
    A.TASK_UPDATED: 'Task "{title}" updated by {actor_email} - Changes: {changes}',
    A.TASK_DELETED: 'Task "{title}" deleted by {actor_email}',
    A.TASK_STATUS_CHANGED: 'Task "{title}" status changed from {old_status} to {new_status} by {actor_email}',
    A.ATTENDANCE_CHECKED_IN: "User checked in at {check_in}",
    A.ATTENDANCE_CHECKED_OUT: "User checked out at {check_out}, worked {hours_worked} hours",
    A.ATTENDANCE_UPDATED: "Attendance record updated for {employee} by {actor_email} - Changes: {changes}",
    A.ATTENDANCE_DELETED: "Attendance record deleted for {employee} by {actor_email}",
    A.REQUEST_SUBMITTED: "New {request_type} request submitted: {subject}",
    A.REQUEST_STATUS_CHANGED: "Request {request_ref} status changed from {old_status} to {new_status} by {actor_email}",
    A.REQUEST_DELETED: "Request {request_ref} deleted by {actor_email}",
    A.DOCUMENT_UPLOADED: 'Document "{title}" uploaded by {actor_email}',
    A.DOCUMENT_DOWNLOADED: 'Document "{title}" downloaded by {actor_email}',
    A.DOCUMENT_DELETED: 'Document "{title}" deleted by {actor_email}',
    A.SYSTEM_ERROR: "System error in {context}: {error}",
    A.SYSTEM_SETTINGS_UPDATED: "System settings updated by {actor_email} - Changes: {changes}",
    A.LOGS_CLEANED_UP: "Deleted {deleted_count} logs older than {days} days",
    A.REQUEST_RECEIVED: "{method} {path}",
    A.REQUEST_COMPLETED: "{method} {path} - {status_code} ({duration_ms}ms)",
}

_FORMATTER = string.Formatter()


@dataclass(frozen=True, slots=True)
class Classification:
    description: str
    severity: Severity


def severity_for(action: str) -> Severity:
    """Return the fixed severity for *action*; unknown tags are ``low``."""
    try:
        return SEVERITY_MAP[AuditAction(action)]
    except ValueError:
        return DEFAULT_SEVERITY


def humanize(action: str) -> str:
    """``task_status_changed`` -> ``Task status changed``."""
    words = action.replace("_", " ").strip()
    return words[:1].upper() + words[1:] if words else "Unknown action"


def describe(action: str, context: Mapping[str, Any] | None = None) -> str:
    """Render the description template for *action* from *context*.

    Falls back to the humanized action name when the action has no
    template or the context lacks a field the template needs.
    """
    try:
        template = DESCRIPTION_TEMPLATES.get(AuditAction(action))
    except ValueError:
        template = None
    if template is None:
        return humanize(action)

    values = dict(context or {})
    needed = {name for _, name, _, _ in _FORMATTER.parse(template) if name}
    if not needed.issubset(values):
        return humanize(action)
    return template.format_map(values)


def classify(
    action: str,
    context: Mapping[str, Any] | None = None,
    description: str | None = None,
) -> Classification:
    """Classify an action.  An explicit *description* wins over the template."""
    if not description:
        description = describe(action, context)
    return Classification(description=description, severity=severity_for(action))
