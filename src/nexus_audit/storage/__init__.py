# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite persistence for the audit trail."""

from nexus_audit.storage.database import close_db, get_db, init_db

__all__ = ["close_db", "get_db", "init_db"]
