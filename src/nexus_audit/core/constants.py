# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Enumerations and limits shared across the audit subsystem."""

from enum import StrEnum


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActorRole(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    SYSTEM = "system"


# Severities the retention sweeper never deletes
PROTECTED_SEVERITIES: frozenset[Severity] = frozenset({Severity.CRITICAL})

DEFAULT_RETENTION_DAYS = 90
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
