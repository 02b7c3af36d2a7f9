"""Per-client session state and its concurrent pumps."""

from __future__ import annotations

import asyncio
import base64
import logging
import secrets
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from termgate.gateway.interfaces import ClientConnection
from termgate.shared.enums import ErrorCode, MessageType, SessionState, TransportKind
from termgate.shared.exceptions import ClientDisconnected, TransportError
from termgate.shared.models import DataPayload, Envelope, ErrorPayload, FileTransferPayload, StatusPayload
from termgate.transport.interfaces import PushTransport, Transport

logger = logging.getLogger(__name__)

Dispatch = Callable[["Session", str], Awaitable[None]]

READ_SIZE = 4096


def new_session_id() -> str:
    """Return an opaque, unique session token."""
    return f"{time.strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(4)}"


@dataclass(frozen=True, slots=True)
class Binding:
    """A transport bound to a session, with the registry hook that releases it."""

    kind: TransportKind
    transport: Transport
    release: Callable[[Any], Awaitable[bool]]


class Session:
    """One client's bridge between its WebSocket and at most one transport.

    ``run`` drives the inbound and outbound pumps until the session ends. A
    serial binding gets a third task that polls the transport; a remote shell
    pushes its output through ``forward_output`` instead.

    ``lock`` guards the binding. Control handlers hold it while they replace
    the binding; ``close`` takes it to release the binding on teardown.
    """

    def __init__(
        self,
        session_id: str,
        connection: ClientConnection,
        dispatch: Dispatch,
        *,
        queue_size: int = 256,
        read_deadline: float = 60.0,
        write_deadline: float = 10.0,
        keepalive_interval: float = 54.0,
        on_close: Callable[[Session], None] | None = None,
    ) -> None:
        self.id = session_id
        self.lock = asyncio.Lock()
        self._connection = connection
        self._dispatch = dispatch
        self._read_deadline = read_deadline
        self._write_deadline = write_deadline
        self._keepalive_interval = keepalive_interval
        self._on_close = on_close
        # Renewed by every inbound frame and every successful outbound write.
        self._alive_at = time.monotonic()

        self._outbound: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._stop = asyncio.Event()
        self._closed = asyncio.Event()
        self._closing = False
        self._binding: Binding | None = None
        self._readers: set[asyncio.Task[None]] = set()
        self._transfer: asyncio.Task[None] | None = None
        # Held by the serial reader around each read and by a transfer for its whole run.
        self._read_gate = asyncio.Lock()

    @property
    def binding(self) -> Binding | None:
        return self._binding

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def transfer_active(self) -> bool:
        return self._transfer is not None and not self._transfer.done()

    @property
    def queued(self) -> int:
        return self._outbound.qsize()

    # ── Pumps ──────────────────────────────────────────────────

    async def run(self) -> None:
        """Run the pumps until the session is torn down."""
        inbound = asyncio.create_task(self._inbound_pump(), name=f"session-in-{self.id}")
        outbound = asyncio.create_task(self._outbound_pump(), name=f"session-out-{self.id}")
        try:
            await self._stop.wait()
        finally:
            await self.close()
            inbound.cancel()
            # The outbound pump drains up to the close marker, then closes the connection.
            _done, pending = await asyncio.wait({outbound}, timeout=self._write_deadline)
            for task in pending:
                task.cancel()
            for result in await asyncio.gather(inbound, outbound, return_exceptions=True):
                if isinstance(result, Exception):
                    logger.error("session %s: pump failed: %s", self.id, result)

    async def _inbound_pump(self) -> None:
        while not self._stop.is_set():
            remaining = self._alive_at + self._read_deadline - time.monotonic()
            if remaining <= 0:
                logger.info("session %s: client silent for %gs, closing", self.id, self._read_deadline)
                break
            try:
                text = await asyncio.wait_for(self._connection.receive_text(), timeout=remaining)
            except asyncio.TimeoutError:
                continue
            except ClientDisconnected as exc:
                logger.info("session %s: %s", self.id, exc)
                break

            self._alive_at = time.monotonic()
            try:
                await self._dispatch(self, text)
            except Exception:
                logger.exception("session %s: unhandled error dispatching frame", self.id)
        await self.close()

    async def _outbound_pump(self) -> None:
        while True:
            try:
                text = await asyncio.wait_for(self._outbound.get(), timeout=self._keepalive_interval)
            except asyncio.TimeoutError:
                text = self._encode(MessageType.STATUS, StatusPayload(state=SessionState.KEEPALIVE.value))

            if text is None:
                await self._connection.close(1000)
                return

            try:
                await asyncio.wait_for(self._connection.send_text(text), timeout=self._write_deadline)
            except (ClientDisconnected, asyncio.TimeoutError) as exc:
                logger.info("session %s: write failed: %s", self.id, exc or "deadline exceeded")
                await self.close()
                return
            self._alive_at = time.monotonic()

    async def _transport_pump(self, binding: Binding) -> None:
        transport = binding.transport
        while not self._stop.is_set() and self._binding is binding:
            try:
                async with self._read_gate:
                    if self._binding is not binding:
                        break
                    data = await transport.read(READ_SIZE)
            except TransportError as exc:
                if self._stop.is_set() or self._binding is not binding:
                    break
                logger.warning("session %s: transport %s failed: %s", self.id, transport.key, exc)
                await self._drop_binding(binding)
                self.send_status(SessionState.DISCONNECTED, str(exc))
                break

            if data and self._binding is binding:
                await self.put_data(data)

    async def _drop_binding(self, binding: Binding) -> None:
        async with self.lock:
            if self._binding is not binding:
                return
            self._binding = None
        await binding.release(binding.transport)

    # ── Binding ────────────────────────────────────────────────

    def bind(self, binding: Binding) -> None:
        """Install ``binding`` and start delivering its output. Caller holds ``lock``."""
        self._binding = binding
        if isinstance(binding.transport, PushTransport):
            binding.transport.set_data_callback(self.forward_output)
        else:
            reader = asyncio.create_task(self._transport_pump(binding), name=f"session-tx-{self.id}")
            self._readers.add(reader)
            reader.add_done_callback(self._readers.discard)
        logger.info("session %s: bound %s %s", self.id, binding.kind.value, binding.transport.key)

    async def release_binding(self) -> bool:
        """Unbind and release the current transport. Caller holds ``lock``.

        Returns True when something was bound.
        """
        binding, self._binding = self._binding, None
        if binding is None:
            return False
        if isinstance(binding.transport, PushTransport):
            binding.transport.set_data_callback(None)
        await binding.release(binding.transport)
        logger.info("session %s: released %s %s", self.id, binding.kind.value, binding.transport.key)
        return True

    # ── Transfers ──────────────────────────────────────────────

    def start_transfer(self, job: Coroutine[Any, Any, None]) -> None:
        """Run ``job`` in the background as this session's only transfer."""
        if self.transfer_active:
            job.close()
            raise RuntimeError(f"session {self.id} already has a transfer running")
        self._transfer = asyncio.create_task(job, name=f"session-xfer-{self.id}")

    async def wait_transfer(self) -> None:
        if self._transfer is not None:
            await asyncio.gather(self._transfer, return_exceptions=True)

    @asynccontextmanager
    async def exclusive(self, binding: Binding) -> AsyncIterator[Transport]:
        """Give a transfer sole use of the bound transport.

        Pauses the serial reader, or detaches the push callback of a remote
        shell, until the block exits.
        """
        transport = binding.transport
        async with self._read_gate:
            pushed = isinstance(transport, PushTransport)
            if pushed:
                transport.set_data_callback(None)
            try:
                yield transport
            finally:
                if pushed and self._binding is binding and not transport.closed:
                    transport.set_data_callback(self.forward_output)

    # ── Outbound queue ─────────────────────────────────────────

    def enqueue(self, message_type: MessageType, payload: Any) -> bool:
        """Queue a message without blocking, dropping the oldest one when full."""
        if self._closing:
            return False
        text = self._encode(message_type, payload)
        while True:
            try:
                self._outbound.put_nowait(text)
                return True
            except asyncio.QueueFull:
                dropped = self._outbound.get_nowait()
                logger.warning(
                    "session %s: outbound queue full, dropped oldest message (%d bytes)", self.id, len(dropped or "")
                )

    async def put_data(self, data: bytes) -> bool:
        """Queue transport output, waiting for space while the session is alive."""
        if self._closing:
            return False
        text = self._encode(MessageType.DATA, DataPayload(data=base64.b64encode(data).decode("ascii")))
        try:
            self._outbound.put_nowait(text)
            return True
        except asyncio.QueueFull:
            pass

        put = asyncio.ensure_future(self._outbound.put(text))
        stopped = asyncio.ensure_future(self._stop.wait())
        done, pending = await asyncio.wait({put, stopped}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        return put in done

    def forward_output(self, data: bytes) -> None:
        """Push callback for remote-shell output."""
        self.enqueue(MessageType.DATA, DataPayload(data=base64.b64encode(data).decode("ascii")))

    def send_status(self, state: SessionState, message: str | None = None) -> None:
        self.enqueue(MessageType.STATUS, StatusPayload(state=state.value, message=message))

    def send_error(self, code: ErrorCode, message: str) -> None:
        self.enqueue(MessageType.ERROR, ErrorPayload(code=code.value, message=message))

    def send_transfer(self, payload: FileTransferPayload) -> None:
        self.enqueue(MessageType.FILE_TRANSFER, payload)

    def _encode(self, message_type: MessageType, payload: Any) -> str:
        body = payload.model_dump(mode="json", exclude_none=True)
        return Envelope(type=message_type.value, session_id=self.id, payload=body).model_dump_json()

    # ── Teardown ───────────────────────────────────────────────

    async def close(self) -> None:
        """Tear the session down once; later calls wait for that teardown to finish."""
        if self._stop.is_set():
            await self._closed.wait()
            return
        self._stop.set()
        logger.info("session %s: closing", self.id)

        async with self.lock:
            try:
                await self.release_binding()
            except TransportError as exc:
                logger.warning("session %s: error releasing transport: %s", self.id, exc)

        if self._on_close is not None:
            self._on_close(self)

        self._closing = True
        while True:
            try:
                self._outbound.put_nowait(None)
                break
            except asyncio.QueueFull:
                self._outbound.get_nowait()
        self._closed.set()
