# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Live notification fan-out to dashboard WebSocket clients."""

from nexus_audit.notifications.hub import (
    ChannelState,
    NotificationHub,
    Subscriber,
    get_notification_hub,
    set_notification_hub,
)
from nexus_audit.notifications.messages import MessageType, notification_message

__all__ = [
    "ChannelState",
    "MessageType",
    "NotificationHub",
    "Subscriber",
    "get_notification_hub",
    "notification_message",
    "set_notification_hub",
]
