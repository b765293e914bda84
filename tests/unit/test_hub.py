# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the in-process notification hub."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from nexus_audit.notifications.hub import (
    ChannelState,
    NotificationHub,
    get_notification_hub,
    set_notification_hub,
)
from nexus_audit.notifications.messages import notification_message


class FakeChannel:
    """Records sent messages; can be told to fail or hang."""

    def __init__(self, *, fail: bool = False, hang: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.fail = fail
        self.hang = hang

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("peer gone")
        if self.hang:
            await asyncio.sleep(3600)
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == kind]


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub(send_timeout=0.2)


async def _subscribed(hub: NotificationHub, user_id: str, **kwargs):
    channel = FakeChannel(**kwargs)
    fail, hang = channel.fail, channel.hang
    channel.fail = channel.hang = False
    sub = await hub.connect(channel)
    await hub.handle_message(sub, json.dumps({"type": "subscribe", "userId": user_id}))
    channel.fail, channel.hang = fail, hang
    return channel, sub


# ---------------------------------------------------------------------------
# Handshake and client messages
# ---------------------------------------------------------------------------


class TestHandshake:
    async def test_connect_sends_connected(self, hub) -> None:
        channel = FakeChannel()
        sub = await hub.connect(channel)

        assert sub.state is ChannelState.CONNECTED
        assert len(channel.sent) == 1
        msg = channel.sent[0]
        assert msg["type"] == "connected"
        assert msg["message"] == "WebSocket connection established"
        assert isinstance(msg["timestamp"], int)

    async def test_subscribe_attaches_user(self, hub) -> None:
        channel, sub = await _subscribed(hub, "42")
        assert sub.user_id == "42"
        assert sub.state is ChannelState.SUBSCRIBED

    async def test_numeric_user_id_is_normalized(self, hub) -> None:
        sub = await hub.connect(FakeChannel())
        await hub.handle_message(sub, {"type": "subscribe", "userId": 42})
        assert sub.user_id == "42"

    async def test_ping_replies_pong(self, hub) -> None:
        channel = FakeChannel()
        sub = await hub.connect(channel)
        await hub.handle_message(sub, '{"type": "ping"}')
        pongs = channel.of_type("pong")
        assert len(pongs) == 1
        assert isinstance(pongs[0]["timestamp"], int)

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[]", '{"no_type": true}', '{"type": "dance"}'],
    )
    async def test_malformed_or_unknown_is_ignored(self, hub, raw) -> None:
        channel = FakeChannel()
        sub = await hub.connect(channel)
        await hub.handle_message(sub, raw)

        assert sub.state is ChannelState.CONNECTED
        assert len(channel.sent) == 1
        assert hub.stats()["connections"] == 1

    async def test_subscribe_without_user_is_ignored(self, hub) -> None:
        sub = await hub.connect(FakeChannel())
        await hub.handle_message(sub, '{"type": "subscribe"}')
        assert sub.state is ChannelState.CONNECTED
        assert sub.user_id is None

    async def test_messages_after_disconnect_are_ignored(self, hub) -> None:
        channel = FakeChannel()
        sub = await hub.connect(channel)
        await hub.disconnect(sub)
        await hub.handle_message(sub, '{"type": "ping"}')

        assert sub.state is ChannelState.CLOSED
        assert channel.of_type("pong") == []


# ---------------------------------------------------------------------------
# Targeted notifications
# ---------------------------------------------------------------------------


class TestNotifyUser:
    async def test_only_matching_user_receives(self, hub) -> None:
        alice, _ = await _subscribed(hub, "alice")
        bob, _ = await _subscribed(hub, "bob")

        delivered = await hub.notify_user("alice", {"title": "Hi", "message": "New task"})

        assert delivered == 1
        notes = alice.of_type("notification")
        assert len(notes) == 1
        assert notes[0]["title"] == "Hi"
        assert notes[0]["message"] == "New task"
        assert bob.of_type("notification") == []

    async def test_every_channel_of_the_user_receives(self, hub) -> None:
        tab1, _ = await _subscribed(hub, "alice")
        tab2, _ = await _subscribed(hub, "alice")

        assert await hub.notify_user("alice", {"message": "x"}) == 2
        assert len(tab1.of_type("notification")) == 1
        assert len(tab2.of_type("notification")) == 1

    async def test_unsubscribed_channel_is_not_targeted(self, hub) -> None:
        channel = FakeChannel()
        await hub.connect(channel)
        assert await hub.notify_user("alice", {"message": "x"}) == 0
        assert channel.of_type("notification") == []

    async def test_dropped_when_user_has_no_channel(self, hub) -> None:
        await _subscribed(hub, "bob")
        assert await hub.notify_user("nobody", {"message": "x"}) == 0
        assert hub.delivery_failures == 0

    async def test_int_user_id_matches(self, hub) -> None:
        channel, _ = await _subscribed(hub, "7")
        assert await hub.notify_user(7, {"message": "x"}) == 1

    async def test_disconnected_user_no_longer_receives(self, hub) -> None:
        channel, sub = await _subscribed(hub, "alice")
        await hub.disconnect(sub)
        assert await hub.notify_user("alice", {"message": "x"}) == 0
        assert hub.stats()["connections"] == 0


# ---------------------------------------------------------------------------
# Broadcast and isolation
# ---------------------------------------------------------------------------


class TestBroadcast:
    async def test_reaches_every_open_channel(self, hub) -> None:
        anon = FakeChannel()
        await hub.connect(anon)
        alice, _ = await _subscribed(hub, "alice")

        assert await hub.broadcast({"message": "maintenance at noon"}) == 2
        assert len(anon.of_type("notification")) == 1
        assert len(alice.of_type("notification")) == 1

    async def test_failing_channel_is_isolated_and_evicted(self, hub) -> None:
        good, _ = await _subscribed(hub, "alice")
        bad, bad_sub = await _subscribed(hub, "bob", fail=True)

        delivered = await hub.broadcast({"message": "hello"})

        assert delivered == 1
        assert len(good.of_type("notification")) == 1
        assert bad.closed
        assert bad_sub.state is ChannelState.CLOSED
        assert hub.delivery_failures == 1
        assert hub.stats()["connections"] == 1

    async def test_one_throwing_channel_of_three(self, hub) -> None:
        first, _ = await _subscribed(hub, "u1")
        await _subscribed(hub, "u2", fail=True)
        third, _ = await _subscribed(hub, "u3")

        assert await hub.broadcast({"message": "x"}) == 2
        assert len(first.of_type("notification")) == 1
        assert len(third.of_type("notification")) == 1

    async def test_failing_channel_does_not_block_same_user(self, hub) -> None:
        good, _ = await _subscribed(hub, "alice")
        await _subscribed(hub, "alice", fail=True)

        assert await hub.notify_user("alice", {"message": "x"}) == 1
        assert len(good.of_type("notification")) == 1

    async def test_hung_channel_times_out_and_is_evicted(self, hub) -> None:
        good, _ = await _subscribed(hub, "alice")
        slow, slow_sub = await _subscribed(hub, "bob", hang=True)

        delivered = await hub.broadcast({"message": "hello"})

        assert delivered == 1
        assert slow.closed
        assert slow_sub.state is ChannelState.CLOSED
        assert len(good.of_type("notification")) == 1


# ---------------------------------------------------------------------------
# Envelope, stats, shutdown
# ---------------------------------------------------------------------------


class TestEnvelope:
    def test_payload_type_moves_to_category(self) -> None:
        msg = notification_message({"type": "task", "message": "x"})
        assert msg["type"] == "notification"
        assert msg["category"] == "task"

    def test_explicit_category_kept(self) -> None:
        msg = notification_message({"type": "task", "category": "hr"})
        assert msg["category"] == "hr"

    def test_timestamp_default_and_override(self) -> None:
        assert isinstance(notification_message({})["timestamp"], int)
        assert notification_message({"timestamp": 5})["timestamp"] == 5


class TestStatsAndShutdown:
    async def test_stats(self, hub) -> None:
        await hub.connect(FakeChannel())
        await _subscribed(hub, "alice")
        await _subscribed(hub, "alice")
        await _subscribed(hub, "bob")

        assert hub.stats() == {
            "connections": 4,
            "subscribed": 3,
            "users": 2,
            "delivery_failures": 0,
        }

    async def test_close_all(self, hub) -> None:
        a, sub_a = await _subscribed(hub, "alice")
        b = FakeChannel()
        await hub.connect(b)

        await hub.close_all()

        assert a.closed and b.closed
        assert sub_a.state is ChannelState.CLOSED
        assert hub.stats()["connections"] == 0


class TestSingleton:
    def test_get_returns_same_instance(self) -> None:
        assert get_notification_hub() is get_notification_hub()

    def test_set_replaces_instance(self) -> None:
        custom = NotificationHub()
        set_notification_hub(custom)
        assert get_notification_hub() is custom
