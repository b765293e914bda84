# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Audit trail: event model, classification, storage, querying and retention."""

from nexus_audit.audit.classifier import Classification, classify
from nexus_audit.audit.events import ActorContext, AuditAction, AuditEvent
from nexus_audit.audit.logger import AuditLogger, get_audit_logger, set_audit_logger
from nexus_audit.audit.query import AuditPage, AuditQuery, QueryService
from nexus_audit.audit.retention import RetentionScheduler, RetentionSweeper
from nexus_audit.audit.store import AuditFilter, AuditStats, AuditStore

__all__ = [
    "ActorContext",
    "AuditAction",
    "AuditEvent",
    "AuditFilter",
    "AuditLogger",
    "AuditPage",
    "AuditQuery",
    "AuditStats",
    "AuditStore",
    "Classification",
    "QueryService",
    "RetentionScheduler",
    "RetentionSweeper",
    "classify",
    "get_audit_logger",
    "set_audit_logger",
]
