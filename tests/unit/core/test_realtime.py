"""
Tests for the in-process WebSocket connection manager.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.realtime import ConnectionManager, schedule_push


def fake_socket(fail: bool = False):
    socket = AsyncMock()
    if fail:
        socket.send_json = AsyncMock(side_effect=RuntimeError("closed"))
    return socket


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_push_reaches_every_socket_of_the_user(self):
        manager = ConnectionManager()
        first, second, other = fake_socket(), fake_socket(), fake_socket()
        await manager.connect(1, first)
        await manager.connect(1, second)
        await manager.connect(2, other)

        delivered = await manager.push(1, "notification", {"id": 5})

        assert delivered == 2
        first.accept.assert_awaited_once()
        first.send_json.assert_awaited_once_with({"event": "notification", "data": {"id": 5}})
        other.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_push_to_offline_user_is_dropped(self):
        manager = ConnectionManager()

        assert await manager.push(99, "notification", {}) == 0
        assert manager.is_online(99) is False

    @pytest.mark.asyncio
    async def test_failing_socket_is_discarded(self):
        manager = ConnectionManager()
        broken, healthy = fake_socket(fail=True), fake_socket()
        await manager.connect(1, broken)
        await manager.connect(1, healthy)

        assert await manager.push(1, "newMessage", {}) == 1
        assert await manager.push(1, "newMessage", {}) == 1
        broken.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disconnect(self):
        manager = ConnectionManager()
        socket = fake_socket()
        await manager.connect(1, socket)
        assert manager.is_online(1)

        manager.disconnect(1, socket)
        manager.disconnect(1, socket)

        assert manager.is_online(1) is False


class TestSchedulePush:
    @pytest.mark.asyncio
    async def test_failures_never_reach_the_caller(self):
        manager = ConnectionManager()
        manager.push = AsyncMock(side_effect=RuntimeError("boom"))

        task = schedule_push(1, "notification", {}, connection_manager=manager)
        await asyncio.gather(task, return_exceptions=True)

        manager.push.assert_awaited_once_with(1, "notification", {})

    @pytest.mark.asyncio
    async def test_push_runs_in_background(self):
        manager = ConnectionManager()
        socket = fake_socket()
        await manager.connect(3, socket)

        task = schedule_push(3, "chatDeleted", {"chat_id": 1}, connection_manager=manager)
        assert await task == 1
