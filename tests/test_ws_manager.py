from __future__ import annotations

import asyncio
import json
from queue import Queue
from types import SimpleNamespace

import pytest

from estove.main import stove_data_ws
from estove.ws_manager import ConnectionManager, publish, queue_forwarder


class _FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.accepted = False
        self.sent: list[str] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, message: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_broadcast_reaches_clients_and_drops_dead_ones() -> None:
    async def scenario() -> tuple[ConnectionManager, _FakeSocket, _FakeSocket]:
        manager = ConnectionManager()
        alive, dead = _FakeSocket(), _FakeSocket(fail=True)
        await manager.connect(alive)
        await manager.connect(dead)
        await manager.broadcast_text("hello")
        return manager, alive, dead

    manager, alive, dead = asyncio.run(scenario())

    assert alive.accepted and dead.accepted
    assert alive.sent == ["hello"]
    assert manager.active_connections == {alive}


def test_forwarder_drains_queue() -> None:
    queue: Queue = Queue()
    publish(queue, "telemetry", {"id": 1, "cooking": True})

    async def scenario() -> _FakeSocket:
        manager = ConnectionManager()
        sock = _FakeSocket()
        await manager.connect(sock)
        task = asyncio.create_task(queue_forwarder(queue, manager))
        for _ in range(50):
            if sock.sent:
                break
            await asyncio.sleep(0.02)
        task.cancel()
        return sock

    sock = asyncio.run(scenario())

    assert [json.loads(m) for m in sock.sent] == [{"kind": "telemetry", "data": {"id": 1, "cooking": True}}]
    assert queue.empty()


class _BinaryFrameSocket(_FakeSocket):
    def __init__(self, manager: ConnectionManager) -> None:
        super().__init__()
        self.app = SimpleNamespace(state=SimpleNamespace(manager=manager))

    async def receive_text(self) -> str:
        # starlette reads message["text"] off a bytes frame
        raise KeyError("text")


def test_endpoint_forgets_client_on_unexpected_error() -> None:
    manager = ConnectionManager()
    sock = _BinaryFrameSocket(manager)

    with pytest.raises(KeyError):
        asyncio.run(stove_data_ws(sock))

    assert sock.accepted
    assert manager.active_connections == set()
