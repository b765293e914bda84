# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared-secret guard for the log and notification endpoints."""

from __future__ import annotations

import hashlib
import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from nexus_audit.core.config import get_settings

ANONYMOUS = "anonymous"

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(
    api_key: str | None = Security(_api_key_header),
) -> str:
    """Check ``X-API-Key`` against ``NEXUS_API_KEYS``.

    With no keys configured the endpoints are open and the caller is
    ``anonymous``.  A missing key is 401, an unknown key 403.
    """
    keys = get_settings().api_keys
    if not keys:
        return ANONYMOUS
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if not any(hmac.compare_digest(api_key, k) for k in keys):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return api_key


def hash_api_key(api_key: str) -> str:
    """Short SHA-256 fingerprint of a key, safe to store in audit metadata."""
    if not api_key or api_key == ANONYMOUS:
        return ANONYMOUS
    return f"sha256:{hashlib.sha256(api_key.encode()).hexdigest()[:16]}"
