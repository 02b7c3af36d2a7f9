"""Keyed registries of live transports with take-over on conflict."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from termgate.shared.exceptions import TransportError
from termgate.transport.interfaces import Transport
from termgate.transport.models import PortInfo, RemoteShellConfig, SerialConfig
from termgate.transport.remote_shell import RemoteShellTransport
from termgate.transport.scanner import list_serial_ports
from termgate.transport.serial_port import SerialTransport

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Transport)

SerialOpener = Callable[[SerialConfig], Awaitable[SerialTransport]]
RemoteConnector = Callable[[str, RemoteShellConfig], Awaitable[RemoteShellTransport]]


class TransportRegistry(Generic[T]):
    """At most one live transport per key.

    Opening a key that is already live closes and evicts the previous
    transport first; its owner sees ``TransportClosedError`` on the next read
    or write.
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._entries: dict[str, T] = {}
        self._lock = asyncio.Lock()

    async def open(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Evict any transport under ``key``, then install the one ``factory`` builds."""
        await self._evict(key)
        transport = await factory()

        async with self._lock:
            raced = self._entries.get(key)
            self._entries[key] = transport
        if raced is not None and raced is not transport:
            logger.info("%s %s was reopened concurrently, closing the older handle", self._kind, key)
            await raced.close()
        return transport

    async def close(self, key: str) -> None:
        """Close and evict ``key``.

        Raises:
            TransportError: If nothing is open under ``key``.
        """
        async with self._lock:
            transport = self._entries.pop(key, None)
        if transport is None:
            raise TransportError(f"{self._kind} {key} is not open")
        await transport.close()

    async def release(self, key: str, transport: T) -> bool:
        """Close ``transport`` and evict it only if it still owns ``key``.

        Returns True when the entry was evicted.
        """
        async with self._lock:
            owned = self._entries.get(key) is transport
            if owned:
                del self._entries[key]
        if not owned:
            logger.debug("%s %s was taken over, not evicting the new owner", self._kind, key)
        await transport.close()
        return owned

    def get(self, key: str) -> T | None:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries)

    async def close_all(self) -> None:
        async with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
        for key, transport in entries:
            try:
                await transport.close()
            except TransportError as exc:
                logger.warning("error closing %s %s: %s", self._kind, key, exc)
        if entries:
            logger.info("closed %d %s transport(s)", len(entries), self._kind)

    async def _evict(self, key: str) -> None:
        async with self._lock:
            previous = self._entries.pop(key, None)
        if previous is not None:
            logger.info("%s %s already open, closing previous handle", self._kind, key)
            await previous.close()


class SerialPortManager:
    """Serial devices keyed by device path."""

    def __init__(self, opener: SerialOpener = SerialTransport.open) -> None:
        self._opener = opener
        self._registry: TransportRegistry[SerialTransport] = TransportRegistry("serial port")

    async def list_ports(self) -> list[PortInfo]:
        return await asyncio.to_thread(list_serial_ports)

    async def open(self, config: SerialConfig) -> SerialTransport:
        """Open ``config.port``, taking it over if it is already open.

        Raises:
            SerialPortError: If the device cannot be opened.
        """
        return await self._registry.open(config.port, lambda: self._opener(config))

    async def close(self, name: str) -> None:
        await self._registry.close(name)

    def get(self, name: str) -> SerialTransport | None:
        return self._registry.get(name)

    def list_open(self) -> list[str]:
        return self._registry.keys()

    async def release(self, transport: SerialTransport) -> bool:
        return await self._registry.release(transport.key, transport)

    async def close_all(self) -> None:
        await self._registry.close_all()


class RemoteShellManager:
    """Remote shells keyed by the owning session id."""

    def __init__(self, connector: RemoteConnector = RemoteShellTransport.connect) -> None:
        self._connector = connector
        self._registry: TransportRegistry[RemoteShellTransport] = TransportRegistry("remote shell")

    async def connect(self, key: str, config: RemoteShellConfig) -> RemoteShellTransport:
        """Connect a shell for ``key``, replacing the one it already has.

        Raises:
            RemoteShellError: On connection, authentication or PTY failure.
        """
        return await self._registry.open(key, lambda: self._connector(key, config))

    async def close(self, key: str) -> None:
        await self._registry.close(key)

    def get(self, key: str) -> RemoteShellTransport | None:
        return self._registry.get(key)

    def list(self) -> list[str]:
        return self._registry.keys()

    async def release(self, transport: RemoteShellTransport) -> bool:
        return await self._registry.release(transport.key, transport)

    async def close_all(self) -> None:
        await self._registry.close_all()
