# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""FastAPI middleware that records every API request as an audit event."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from nexus_audit.api.auth import hash_api_key
from nexus_audit.audit.events import ActorContext, AuditAction
from nexus_audit.audit.logger import get_audit_logger
from nexus_audit.core.constants import Severity

# Paths that should not generate audit events (noise reduction)
_SKIP_PATHS: set[str] = {
    "/api/v1/health",
    "/api/docs",
    "/api/redoc",
    "/api/openapi.json",
    "/favicon.ico",
}


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs every API request as a ``request_completed`` audit event.

    Error responses (status >= 400) are recorded with ``medium`` severity.
    A handler that raises is recorded as a 500 before the exception
    propagates.  Audit failures are absorbed by the audit logger and never
    change the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            await self._record(request, 500, start)
            raise

        await self._record(request, response.status_code, start)
        return response

    @staticmethod
    async def _record(request: Request, status_code: int, start: float) -> None:
        duration_ms = round((time.monotonic() - start) * 1000, 1)
        api_key = request.headers.get("X-API-Key", "")
        await get_audit_logger().record(
            AuditAction.REQUEST_COMPLETED,
            actor=ActorContext.from_request(request),
            severity=Severity.MEDIUM if status_code >= 400 else None,
            metadata={
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params) or None,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "api_key": hash_api_key(api_key),
            },
        )
