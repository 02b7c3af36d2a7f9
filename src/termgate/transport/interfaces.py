"""Protocol interfaces for byte-stream transports."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

DataCallback = Callable[[bytes], None]


@runtime_checkable
class Transport(Protocol):
    """Capability set shared by every transport a session can bind."""

    @property
    def key(self) -> str:
        """Registry key: device path or owning session id."""
        ...

    @property
    def closed(self) -> bool: ...

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes.

        Returns ``b""`` when nothing arrived within the transport's own read
        timeout, so callers can poll without a separate deadline.

        Raises:
            TransportClosedError: If the transport has been closed.
            TransportError: If the underlying device or channel failed.
        """
        ...

    async def write(self, data: bytes) -> int:
        """Write all of ``data`` and return the number of bytes written.

        Raises:
            TransportClosedError: If the transport has been closed.
            TransportError: If the write failed.
        """
        ...

    async def close(self) -> None:
        """Close the transport. Calling it again is a no-op."""
        ...


@runtime_checkable
class ResizableTransport(Transport, Protocol):
    """Transport with a terminal window size (remote shells)."""

    async def resize(self, cols: int, rows: int) -> None: ...


@runtime_checkable
class PushTransport(Transport, Protocol):
    """Transport that can push received bytes to a callback instead of buffering them."""

    def set_data_callback(self, callback: DataCallback | None) -> None: ...
