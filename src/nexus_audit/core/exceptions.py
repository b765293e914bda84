# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Custom exception hierarchy for nexus-audit."""


class NexusAuditError(Exception):
    """Base exception for all nexus-audit errors."""


class ConfigurationError(NexusAuditError):
    """Invalid or missing configuration."""


class StorageError(NexusAuditError):
    """Database or storage operation failed."""


class InvalidFilterError(NexusAuditError):
    """Audit query parameters are out of range or contradictory."""


class InvalidRetentionWindowError(NexusAuditError):
    """Retention window is not a positive whole number of days."""


class DeliveryError(NexusAuditError):
    """A notification could not be delivered to a subscriber channel."""
