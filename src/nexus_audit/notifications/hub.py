# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""In-process notification hub for dashboard WebSocket clients.

Delivery is best-effort and at-most-once: nothing is queued for users
without an open channel.  The audit store remains the system of record.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from pydantic import ValidationError

from nexus_audit.core.exceptions import DeliveryError
from nexus_audit.notifications.messages import (
    ClientMessage,
    MessageType,
    connected_message,
    notification_message,
    pong_message,
)

logger = logging.getLogger("nexus_audit.notifications.hub")

# Module-level singleton
_hub: NotificationHub | None = None


class ChannelState(StrEnum):
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class SubscriberChannel(Protocol):
    """The slice of a Starlette ``WebSocket`` the hub relies on."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass
class Subscriber:
    """One open channel and the user identity it subscribed as."""

    channel: SubscriberChannel
    channel_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str | None = None
    state: ChannelState = ChannelState.CONNECTED
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_seen: datetime = field(default_factory=lambda: datetime.now(UTC))
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class NotificationHub:
    """Registry of subscriber channels with per-user and broadcast fan-out.

    Registry mutations happen under an :class:`asyncio.Lock`; fan-out works
    on a snapshot taken under the lock.  Each send is isolated and bounded
    by *send_timeout*; a channel whose send fails is closed and evicted.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout
        self.delivery_failures = 0

    async def connect(self, channel: SubscriberChannel) -> Subscriber:
        """Register an accepted channel and send the ``connected`` handshake."""
        subscriber = Subscriber(channel=channel)
        async with self._lock:
            self._subscribers[subscriber.channel_id] = subscriber
        logger.info("Notification channel %s connected", subscriber.channel_id)
        await self._send(subscriber, connected_message())
        return subscriber

    async def disconnect(self, subscriber: Subscriber) -> None:
        async with self._lock:
            self._subscribers.pop(subscriber.channel_id, None)
            subscriber.state = ChannelState.CLOSED
        logger.info(
            "Notification channel %s closed (user=%s)",
            subscriber.channel_id,
            subscriber.user_id,
        )

    async def handle_message(
        self, subscriber: Subscriber, raw: str | bytes | Mapping[str, Any]
    ) -> None:
        """Process one client message: ``subscribe`` or ``ping``.

        Malformed and unknown messages are logged and ignored.
        """
        if subscriber.state is ChannelState.CLOSED:
            return
        try:
            if isinstance(raw, Mapping):
                message = ClientMessage.model_validate(raw)
            else:
                message = ClientMessage.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring malformed message on channel %s: %s",
                subscriber.channel_id,
                exc.errors()[0]["msg"] if exc.errors() else exc,
            )
            return

        subscriber.last_seen = datetime.now(UTC)

        if message.type == MessageType.SUBSCRIBE:
            if message.user_id is None or str(message.user_id) == "":
                logger.warning(
                    "Subscribe without userId on channel %s", subscriber.channel_id
                )
                return
            async with self._lock:
                if subscriber.channel_id not in self._subscribers:
                    return
                subscriber.user_id = str(message.user_id)
                subscriber.state = ChannelState.SUBSCRIBED
            logger.info(
                "User %s subscribed on channel %s",
                subscriber.user_id,
                subscriber.channel_id,
                extra={"channel_id": subscriber.channel_id, "user_id": subscriber.user_id},
            )
        elif message.type == MessageType.PING:
            await self._send(subscriber, pong_message())
        else:
            logger.debug(
                "Unknown message type %r on channel %s", message.type, subscriber.channel_id
            )

    async def notify_user(self, user_id: str | int, payload: Mapping[str, Any]) -> int:
        """Deliver *payload* to every channel subscribed as *user_id*.

        Returns the number of channels that accepted the message; zero when
        the user has no open channel (the notification is dropped).
        """
        target = str(user_id)
        async with self._lock:
            targets = [
                s for s in self._subscribers.values()
                if s.state is ChannelState.SUBSCRIBED and s.user_id == target
            ]
        if not targets:
            logger.debug("No open channel for user %s; notification dropped", target)
            return 0
        return await self._deliver(targets, notification_message(payload))

    async def broadcast(self, payload: Mapping[str, Any]) -> int:
        """Deliver *payload* to every open channel, subscribed or not."""
        async with self._lock:
            targets = [
                s for s in self._subscribers.values() if s.state is not ChannelState.CLOSED
            ]
        return await self._deliver(targets, notification_message(payload))

    async def close_all(self) -> None:
        """Close every channel (used on application shutdown)."""
        async with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
            for s in subscribers:
                s.state = ChannelState.CLOSED
        for s in subscribers:
            with contextlib.suppress(Exception):
                await s.channel.close()

    def stats(self) -> dict[str, int]:
        subscribers = list(self._subscribers.values())
        subscribed = [s for s in subscribers if s.state is ChannelState.SUBSCRIBED]
        return {
            "connections": len(subscribers),
            "subscribed": len(subscribed),
            "users": len({s.user_id for s in subscribed}),
            "delivery_failures": self.delivery_failures,
        }

    async def _deliver(self, targets: list[Subscriber], message: dict[str, Any]) -> int:
        results = await asyncio.gather(*(self._send(s, message) for s in targets))
        return sum(1 for ok in results if ok)

    async def _transmit(self, subscriber: Subscriber, message: dict[str, Any]) -> None:
        try:
            async with subscriber.send_lock:
                await asyncio.wait_for(
                    subscriber.channel.send_json(message), timeout=self._send_timeout
                )
        except TimeoutError as exc:
            raise DeliveryError(f"send timed out after {self._send_timeout}s") from exc
        except Exception as exc:
            raise DeliveryError(str(exc) or type(exc).__name__) from exc

    async def _send(self, subscriber: Subscriber, message: dict[str, Any]) -> bool:
        try:
            await self._transmit(subscriber, message)
            return True
        except DeliveryError as exc:
            self.delivery_failures += 1
            logger.warning(
                "Delivery to channel %s (user=%s) failed: %s",
                subscriber.channel_id,
                subscriber.user_id,
                exc,
            )
            await self._evict(subscriber)
            return False

    async def _evict(self, subscriber: Subscriber) -> None:
        await self.disconnect(subscriber)
        with contextlib.suppress(Exception):
            await subscriber.channel.close()


def get_notification_hub() -> NotificationHub:
    """Return the module-level NotificationHub singleton."""
    global _hub
    if _hub is None:
        from nexus_audit.core.config import get_settings

        _hub = NotificationHub(send_timeout=get_settings().ws_send_timeout)
    return _hub


def set_notification_hub(hub: NotificationHub | None) -> None:
    """Replace the module-level NotificationHub singleton (useful for testing)."""
    global _hub
    _hub = hub
