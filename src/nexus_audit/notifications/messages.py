# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""JSON message shapes exchanged over the notification WebSocket."""

from __future__ import annotations

import time
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageType(StrEnum):
    CONNECTED = "connected"
    SUBSCRIBE = "subscribe"
    PING = "ping"
    PONG = "pong"
    NOTIFICATION = "notification"


class ClientMessage(BaseModel):
    """A message received from a dashboard client."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    user_id: str | int | None = Field(default=None, alias="userId")


def epoch_millis() -> int:
    return int(time.time() * 1000)


def connected_message() -> dict[str, Any]:
    return {
        "type": MessageType.CONNECTED.value,
        "message": "WebSocket connection established",
        "timestamp": epoch_millis(),
    }


def pong_message() -> dict[str, Any]:
    return {"type": MessageType.PONG.value, "timestamp": epoch_millis()}


def notification_message(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Wrap *payload* in a ``notification`` envelope.

    A ``type`` key in the payload is moved to ``category`` so it cannot
    replace the envelope type.
    """
    body = dict(payload)
    if "type" in body:
        category = body.pop("type")
        body.setdefault("category", category)
    body.setdefault("timestamp", epoch_millis())
    return {"type": MessageType.NOTIFICATION.value, **body}
