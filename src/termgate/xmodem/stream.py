"""Deadline-bounded byte reads on top of a polling transport."""

from __future__ import annotations

import asyncio

from termgate.transport.interfaces import Transport


async def read_byte(transport: Transport, timeout: float) -> int | None:
    """Return the next byte, or ``None`` if nothing arrives within ``timeout`` seconds.

    Relies on ``Transport.read`` returning after its own short read timeout;
    the read is never cancelled mid-flight, so no byte can be lost.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        data = await transport.read(1)
        if data:
            return data[0]
    return None


async def read_exact(transport: Transport, size: int, timeout: float) -> bytes:
    """Read ``size`` bytes; returns fewer if the deadline passes first."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    buf = bytearray()
    while len(buf) < size and loop.time() < deadline:
        buf.extend(await transport.read(size - len(buf)))
    return bytes(buf)
