# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Notification endpoints: the dashboard WebSocket and manual send triggers."""

from __future__ import annotations

import contextlib
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from nexus_audit.api.auth import require_api_key
from nexus_audit.notifications.hub import get_notification_hub

router = APIRouter()
ws_router = APIRouter()


class TestNotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | int = Field(alias="userId")
    message: str
    title: str = "Test Notification"


class BroadcastRequest(BaseModel):
    title: str
    message: str
    category: str = "info"


class DeliveryResponse(BaseModel):
    status: str = "success"
    delivered: int


@router.post("/notifications/test", response_model=DeliveryResponse)
async def send_test_notification(
    body: TestNotificationRequest,
    _api_key: str = Depends(require_api_key),
) -> DeliveryResponse:
    """Send a test notification to every open channel of one user."""
    delivered = await get_notification_hub().notify_user(
        body.user_id,
        {
            "title": body.title,
            "message": body.message,
            "category": "info",
            "sentAt": datetime.now(UTC).isoformat(),
        },
    )
    return DeliveryResponse(delivered=delivered)


@router.post("/notifications/broadcast", response_model=DeliveryResponse)
async def broadcast_notification(
    body: BroadcastRequest,
    _api_key: str = Depends(require_api_key),
) -> DeliveryResponse:
    """Send an announcement to every connected dashboard."""
    delivered = await get_notification_hub().broadcast(
        {
            "title": body.title,
            "message": body.message,
            "category": body.category,
            "sentAt": datetime.now(UTC).isoformat(),
        }
    )
    return DeliveryResponse(delivered=delivered)


@ws_router.websocket("/ws")
async def notifications_socket(websocket: WebSocket) -> None:
    """Dashboard notification channel (``subscribe`` / ``ping`` protocol)."""
    hub = get_notification_hub()
    await websocket.accept()
    subscriber = await hub.connect(websocket)
    try:
        with contextlib.suppress(WebSocketDisconnect):
            while True:
                raw = await websocket.receive_text()
                await hub.handle_message(subscriber, raw)
    finally:
        await hub.disconnect(subscriber)
