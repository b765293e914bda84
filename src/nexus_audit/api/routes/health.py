# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from nexus_audit import __version__

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    database: str
    websocket: dict[str, int]


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from nexus_audit.notifications.hub import get_notification_hub
    from nexus_audit.storage.database import get_db

    try:
        db = await get_db()
        cursor = await db.execute("SELECT 1")
        await cursor.fetchone()
        database = "connected"
    except Exception as exc:
        database = f"disconnected: {exc}"

    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        service="nexus-audit",
        version=__version__,
        database=database,
        websocket=get_notification_hub().stats(),
    )
