"""Tests for realtime fan-out."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from momento.realtime import ConnectionRegistry, RealtimeEvent, RealtimeFanout


def make_connection(fail: bool = False) -> AsyncMock:
    connection = AsyncMock()
    if fail:
        connection.emit.side_effect = ConnectionError("socket closed")
    return connection


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def fanout(registry: ConnectionRegistry) -> RealtimeFanout:
    return RealtimeFanout(registry)


class TestConnectionRegistry:
    """Test per-user connection tracking."""

    def test_register_multiple_connections(self, registry: ConnectionRegistry) -> None:
        """A user may hold several connections."""
        registry.register("u1", make_connection())
        registry.register("u1", make_connection())

        assert registry.is_online("u1")
        assert registry.user_count == 1
        assert registry.connection_count == 2

    def test_unregister_last_connection_removes_user(self, registry: ConnectionRegistry) -> None:
        """The user goes offline with their last connection."""
        connection = make_connection()
        registry.register("u1", connection)

        assert registry.unregister(connection) == "u1"
        assert not registry.is_online("u1")

    def test_unregister_unknown_connection(self, registry: ConnectionRegistry) -> None:
        """Unknown handles are ignored."""
        assert registry.unregister(make_connection()) is None


class TestEmitToUser:
    """Test targeted delivery."""

    @pytest.mark.asyncio
    async def test_offline_user_is_noop(self, fanout: RealtimeFanout) -> None:
        """Emitting to an offline user delivers nothing and does not raise."""
        delivered = await fanout.emit_to_user("nobody", RealtimeEvent.NEW_MESSAGE, {"x": 1})
        assert delivered == 0

    @pytest.mark.asyncio
    async def test_every_connection_receives_once(
        self, registry: ConnectionRegistry, fanout: RealtimeFanout
    ) -> None:
        """Each of the user's connections receives the event exactly once."""
        tab_a, tab_b, other = make_connection(), make_connection(), make_connection()
        registry.register("u1", tab_a)
        registry.register("u1", tab_b)
        registry.register("u2", other)

        delivered = await fanout.emit_to_user(
            "u1", RealtimeEvent.NOTIFICATION_COUNT_UPDATED, {"count": 3}
        )

        assert delivered == 2
        tab_a.emit.assert_awaited_once_with("notification-count-updated", {"count": 3})
        tab_b.emit.assert_awaited_once_with("notification-count-updated", {"count": 3})
        other.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_connection_is_dropped(
        self, registry: ConnectionRegistry, fanout: RealtimeFanout
    ) -> None:
        """A dead handle is unregistered and does not block the others."""
        dead, alive = make_connection(fail=True), make_connection()
        registry.register("u1", dead)
        registry.register("u1", alive)

        delivered = await fanout.emit_to_user("u1", "new-message", {"text": "hi"})

        assert delivered == 1
        alive.emit.assert_awaited_once()
        assert registry.connections_for("u1") == [alive]


class TestBroadcast:
    """Test delivery to everyone."""

    @pytest.mark.asyncio
    async def test_broadcast_reaches_all_users(
        self, registry: ConnectionRegistry, fanout: RealtimeFanout
    ) -> None:
        """Every registered connection receives a broadcast."""
        first, second = make_connection(), make_connection()
        registry.register("u1", first)
        registry.register("u2", second)

        delivered = await fanout.broadcast(RealtimeEvent.POST_UPDATED, {"postId": "p1"})

        assert delivered == 2
        first.emit.assert_awaited_once_with("post-updated", {"postId": "p1"})
        second.emit.assert_awaited_once_with("post-updated", {"postId": "p1"})

    @pytest.mark.asyncio
    async def test_broadcast_with_no_connections(self, fanout: RealtimeFanout) -> None:
        """Broadcasting with nobody online is a no-op."""
        assert await fanout.broadcast(RealtimeEvent.POST_UPDATED) == 0
