# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""nexus-audit - Audit trail and live notifications for the Nexus ERP."""

__version__ = "0.2.0"

from nexus_audit.audit.events import ActorContext, AuditAction, AuditEvent
from nexus_audit.audit.logger import AuditLogger, get_audit_logger
from nexus_audit.notifications.hub import NotificationHub, get_notification_hub

__all__ = [
    "ActorContext",
    "AuditAction",
    "AuditEvent",
    "AuditLogger",
    "NotificationHub",
    "__version__",
    "get_audit_logger",
    "get_notification_hub",
]
