"""Shared pytest fixtures for the termgate test suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from termgate.config import Settings
from termgate.shared.exceptions import ClientDisconnected, TransportClosedError

Responder = Callable[[bytes], bytes]


class ScriptedTransport:
    """In-memory transport.

    Bytes in ``inbox`` are served by ``read``; every write is recorded and fed
    to ``responder``, whose reply is appended to ``inbox``.
    """

    def __init__(self, key: str = "fake0", inbox: bytes = b"", responder: Responder | None = None) -> None:
        self.key = key
        self.inbox = bytearray(inbox)
        self.responder = responder
        self.writes: list[bytes] = []
        self.closed = False
        self.close_calls = 0

    async def read(self, size: int) -> bytes:
        if self.closed:
            raise TransportClosedError(f"{self.key} is closed")
        if not self.inbox:
            await asyncio.sleep(0.001)
            return b""
        data = bytes(self.inbox[:size])
        del self.inbox[:size]
        return data

    async def write(self, data: bytes) -> int:
        if self.closed:
            raise TransportClosedError(f"{self.key} is closed")
        self.writes.append(bytes(data))
        if self.responder is not None:
            self.inbox.extend(self.responder(bytes(data)))
        return len(data)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class ScriptedShell(ScriptedTransport):
    """Scripted transport with the remote-shell extras: push callback and resize."""

    def __init__(self, key: str = "shell0", inbox: bytes = b"", responder: Responder | None = None) -> None:
        super().__init__(key, inbox, responder)
        self.callback: Callable[[bytes], None] | None = None
        self.sizes: list[tuple[int, int]] = []

    def set_data_callback(self, callback: Callable[[bytes], None] | None) -> None:
        self.callback = callback

    async def resize(self, cols: int, rows: int) -> None:
        self.sizes.append((cols, rows))

    def emit(self, data: bytes) -> None:
        """Simulate output arriving from the remote side."""
        assert self.callback is not None
        self.callback(data)


class FakeConnection:
    """Client connection fed from ``inbound``; a ``None`` item means the peer left."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None

    async def receive_text(self) -> str:
        item = await self.inbound.get()
        if item is None:
            raise ClientDisconnected("client disconnected (code 1000)")
        return item

    async def send_text(self, text: str) -> None:
        if self.close_code is not None:
            raise ClientDisconnected("connection closed")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000) -> None:
        self.close_code = code

    def push(self, message: dict[str, Any]) -> None:
        self.inbound.put_nowait(json.dumps(message))


def replies(*items: bytes) -> Responder:
    """Responder answering successive writes with ``items``, then with silence."""
    remaining = iter(items)
    return lambda _data: next(remaining, b"")


@pytest.fixture()
def settings() -> Settings:
    """Return a Settings instance with test defaults."""
    return Settings(
        allowed_origins="*",
        read_deadline_seconds=5.0,
        write_deadline_seconds=1.0,
        keepalive_interval_seconds=5.0,
        outbound_queue_size=64,
        serial_read_timeout_seconds=0.01,
    )


@pytest.fixture()
def scripted_transport() -> type[ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture()
def scripted_shell() -> type[ScriptedShell]:
    return ScriptedShell


@pytest.fixture()
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def make_replies() -> Callable[..., Responder]:
    return replies
