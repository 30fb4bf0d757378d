"""
Unit tests for socket_manager.py connection bookkeeping.
Drives SocketManager.connect with queue-fed mock WebSockets to test
dead-socket cleanup and reconnection under the same client id.
"""
import sys
import os
import asyncio

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi import WebSocketDisconnect

from quiz_session import QuizSession
from socket_manager import SocketManager


# ---------------------------------------------------------------------------
# Mock WebSocket
# ---------------------------------------------------------------------------

class MockWebSocket:
    """Lightweight mock for fastapi.WebSocket with a scripted inbox."""
    def __init__(self):
        self.sent_messages: list[dict] = []
        self.closed = False
        self.close_code = None
        self.fail_sends = False
        self.inbox: asyncio.Queue = asyncio.Queue()

    async def send_json(self, data: dict):
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent_messages.append(data)

    async def close(self, code: int = 1000):
        self.closed = True
        self.close_code = code

    async def accept(self):
        pass

    async def receive_text(self) -> str:
        item = await self.inbox.get()
        if item is None:
            raise WebSocketDisconnect(code=1006)
        return item

    @property
    def headers(self):
        return {"origin": ""}

    def feed(self, text: str):
        self.inbox.put_nowait(text)

    def hang_up(self):
        self.inbox.put_nowait(None)


async def wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise TimeoutError("condition not reached")
        await asyncio.sleep(0.01)


JOIN_7 = '{"type": "participant:join", "player": {"id": 7, "name": "Neo"}}'


# ---------------------------------------------------------------------------
# Connection cleanup
# ---------------------------------------------------------------------------

class TestConnectionCleanup:
    @pytest.mark.asyncio
    async def test_hang_up_removes_participant(self):
        manager = SocketManager()
        session = QuizSession(manager, tick_interval=60.0)
        ws = MockWebSocket()
        task = asyncio.create_task(manager.connect(ws, session, "c7"))
        ws.feed(JOIN_7)
        await wait_for(lambda: 7 in session.state.participants)

        ws.hang_up()
        await task
        assert "c7" not in manager.connections
        assert session.state.participants == {}

    @pytest.mark.asyncio
    async def test_stale_socket_exit_keeps_reconnected_player(self):
        manager = SocketManager()
        session = QuizSession(manager, tick_interval=60.0)

        old_ws = MockWebSocket()
        old_task = asyncio.create_task(manager.connect(old_ws, session, "c7"))
        old_ws.feed(JOIN_7)
        await wait_for(lambda: 7 in session.state.participants)

        # The old socket dies; the next broadcast drops it from the manager
        old_ws.fail_sends = True
        await session.reset_all_winners()
        assert "c7" not in manager.connections

        new_ws = MockWebSocket()
        new_task = asyncio.create_task(manager.connect(new_ws, session, "c7"))
        await wait_for(lambda: manager.connections.get("c7") is new_ws)
        new_ws.feed(JOIN_7)
        await wait_for(lambda: len(new_ws.sent_messages) >= 2)

        # The old receive loop only now notices the hang-up
        old_ws.hang_up()
        await old_task
        assert manager.connections.get("c7") is new_ws
        assert 7 in session.state.participants
        assert session.registry.player_for("c7").id == 7

        new_ws.hang_up()
        await new_task
        assert session.state.participants == {}

    @pytest.mark.asyncio
    async def test_forced_logout_then_rejoin_survives_old_loop_exit(self):
        manager = SocketManager()
        session = QuizSession(manager, tick_interval=60.0)

        old_ws = MockWebSocket()
        old_task = asyncio.create_task(manager.connect(old_ws, session, "c7"))
        old_ws.feed(JOIN_7)
        await wait_for(lambda: 7 in session.state.participants)

        assert await session.force_logout_participant(7)
        assert old_ws.closed

        new_ws = MockWebSocket()
        new_task = asyncio.create_task(manager.connect(new_ws, session, "c7"))
        await wait_for(lambda: manager.connections.get("c7") is new_ws)
        new_ws.feed(JOIN_7)
        await wait_for(lambda: 7 in session.state.participants)

        old_ws.hang_up()
        await old_task
        assert 7 in session.state.participants

        new_ws.hang_up()
        await new_task
