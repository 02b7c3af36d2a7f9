"""Registry of live sessions and the envelope dispatcher."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from termgate.config import Settings, get_settings
from termgate.gateway import transfer
from termgate.gateway.interfaces import ClientConnection
from termgate.gateway.session import Binding, Session, new_session_id
from termgate.shared.enums import ControlAction, ErrorCode, MessageType, SessionState, TransportKind
from termgate.shared.exceptions import EnvelopeError, TransportError
from termgate.shared.models import (
    ControlPayload,
    DataPayload,
    Envelope,
    ReceiveFileParams,
    ResizeParams,
    SendFileParams,
    StatusPayload,
)
from termgate.transport.interfaces import ResizableTransport
from termgate.transport.models import RemoteShellConfig, SerialConfig
from termgate.transport.registry import RemoteShellManager, SerialPortManager

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Older clients name the remote-shell action after the protocol.
_ACTION_ALIASES = {"connect_ssh": ControlAction.CONNECT_REMOTE}


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error["loc"])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)


def _validate(model: type[M], data: Any, code: ErrorCode) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise EnvelopeError(code, _describe(exc)) from exc


def _decode_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EnvelopeError(ErrorCode.DECODE_ERROR, f"failed to decode data: {exc}") from exc


async def _attach(session: Session, binding: Binding) -> bool:
    """Bind a freshly opened transport, or release it if the session stopped meanwhile. Caller holds ``lock``."""
    if session.stopped:
        logger.info("session %s: closed while opening %s, releasing it", session.id, binding.transport.key)
        await binding.release(binding.transport)
        return False
    session.bind(binding)
    return True


def parse_envelope(text: str) -> Envelope:
    """Decode one inbound frame.

    Raises:
        EnvelopeError: ``INVALID_MESSAGE`` when the frame is not an envelope.
    """
    try:
        return Envelope.model_validate_json(text)
    except ValidationError as exc:
        raise EnvelopeError(ErrorCode.INVALID_MESSAGE, f"failed to parse message: {_describe(exc)}") from exc


class SessionHub:
    """Turns accepted client connections into sessions and routes their envelopes.

    Handlers report failures by raising ``EnvelopeError``; ``dispatch`` turns
    it into an ``error`` envelope and the session carries on.
    """

    def __init__(
        self,
        serial_ports: SerialPortManager,
        remote_shells: RemoteShellManager,
        settings: Settings | None = None,
    ) -> None:
        self._serial_ports = serial_ports
        self._remote_shells = remote_shells
        self._settings = settings or get_settings()
        self._sessions: dict[str, Session] = {}
        self._handlers: dict[str, Callable[[Session, Envelope], Awaitable[None]]] = {
            MessageType.DATA.value: self._handle_data,
            MessageType.CONTROL.value: self._handle_control,
            MessageType.STATUS.value: self._handle_status,
        }
        self._actions: dict[ControlAction, Callable[[Session, dict[str, Any]], Awaitable[None]]] = {
            ControlAction.CONNECT: self._connect,
            ControlAction.CONNECT_REMOTE: self._connect_remote,
            ControlAction.DISCONNECT: self._disconnect,
            ControlAction.RESIZE: self._resize,
            ControlAction.SEND_FILE: self._send_file,
            ControlAction.RECEIVE_FILE: self._receive_file,
        }

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def create_session(self, connection: ClientConnection) -> Session:
        settings = self._settings
        session = Session(
            new_session_id(),
            connection,
            self.dispatch,
            queue_size=settings.outbound_queue_size,
            read_deadline=settings.read_deadline_seconds,
            write_deadline=settings.write_deadline_seconds,
            keepalive_interval=settings.keepalive_interval_seconds,
            on_close=self._deregister,
        )
        self._sessions[session.id] = session
        logger.info("session %s: created (%d live)", session.id, len(self._sessions))
        return session

    async def serve(self, connection: ClientConnection) -> None:
        """Run one client's session until it ends."""
        session = self.create_session(connection)
        session.send_status(SessionState.READY, "websocket connection established")
        await session.run()

    async def close_all(self) -> None:
        for session in list(self._sessions.values()):
            await session.close()

    def _deregister(self, session: Session) -> None:
        self._sessions.pop(session.id, None)
        logger.info("session %s: removed (%d live)", session.id, len(self._sessions))

    # ── Dispatch ───────────────────────────────────────────────

    async def dispatch(self, session: Session, text: str) -> None:
        try:
            envelope = parse_envelope(text)
            handler = self._handlers.get(envelope.type)
            if handler is None:
                raise EnvelopeError(ErrorCode.UNKNOWN_TYPE, f"unknown message type: {envelope.type}")
            await handler(session, envelope)
        except EnvelopeError as exc:
            logger.debug("session %s: %s %s", session.id, exc.code, exc.message)
            session.send_error(ErrorCode(exc.code), exc.message)

    async def _handle_status(self, session: Session, envelope: Envelope) -> None:
        status = _validate(StatusPayload, envelope.payload, ErrorCode.INVALID_MESSAGE)
        if status.state != SessionState.KEEPALIVE.value:
            logger.debug("session %s: ignoring client status %s", session.id, status.state)

    async def _handle_data(self, session: Session, envelope: Envelope) -> None:
        binding = self._require_binding(session)
        payload = _validate(DataPayload, envelope.payload, ErrorCode.INVALID_DATA)
        raw = payload.data.encode("utf-8") if payload.encoding == "raw" else _decode_base64(payload.data)
        if session.transfer_active:
            raise EnvelopeError(ErrorCode.TRANSFER_IN_PROGRESS, "a file transfer owns the connection")
        try:
            await binding.transport.write(raw)
        except TransportError as exc:
            raise EnvelopeError(ErrorCode.WRITE_ERROR, str(exc)) from exc

    async def _handle_control(self, session: Session, envelope: Envelope) -> None:
        control = _validate(ControlPayload, envelope.payload, ErrorCode.INVALID_CONTROL)
        try:
            action = _ACTION_ALIASES.get(control.action) or ControlAction(control.action)
        except ValueError as exc:
            raise EnvelopeError(ErrorCode.UNKNOWN_ACTION, f"unknown control action: {control.action}") from exc
        await self._actions[action](session, control.params)

    # ── Control actions ────────────────────────────────────────

    async def _connect(self, session: Session, params: dict[str, Any]) -> None:
        config = _validate(
            SerialConfig,
            {"read_timeout": self._settings.serial_read_timeout_seconds, **params},
            ErrorCode.INVALID_PARAMS,
        )
        async with session.lock:
            if session.stopped:
                logger.info("session %s: closed, not opening %s", session.id, config.port)
                return
            await session.release_binding()
            try:
                transport = await self._serial_ports.open(config)
            except TransportError as exc:
                raise EnvelopeError(ErrorCode.OPEN_FAILED, str(exc)) from exc
            if not await _attach(session, Binding(TransportKind.SERIAL, transport, self._serial_ports.release)):
                return
        session.send_status(SessionState.CONNECTED, f"port {config.port} opened")

    async def _connect_remote(self, session: Session, params: dict[str, Any]) -> None:
        config = _validate(
            RemoteShellConfig,
            {"connect_timeout": self._settings.remote_connect_timeout_seconds, **params},
            ErrorCode.INVALID_PARAMS,
        )
        async with session.lock:
            if session.stopped:
                logger.info("session %s: closed, not connecting to %s", session.id, config.host)
                return
            await session.release_binding()
            try:
                transport = await self._remote_shells.connect(session.id, config)
            except TransportError as exc:
                raise EnvelopeError(ErrorCode.REMOTE_CONNECT_FAILED, str(exc)) from exc
            if not await _attach(session, Binding(TransportKind.REMOTE_SHELL, transport, self._remote_shells.release)):
                return
        session.send_status(SessionState.CONNECTED, f"connected to {config.username}@{config.host}:{config.port}")

    async def _disconnect(self, session: Session, params: dict[str, Any]) -> None:
        async with session.lock:
            await session.release_binding()
        session.send_status(SessionState.DISCONNECTED, "connection closed")

    async def _resize(self, session: Session, params: dict[str, Any]) -> None:
        size = _validate(ResizeParams, params, ErrorCode.INVALID_PARAMS)
        binding = session.binding
        if binding is None or not isinstance(binding.transport, ResizableTransport):
            return
        try:
            await binding.transport.resize(size.cols, size.rows)
        except TransportError as exc:
            raise EnvelopeError(ErrorCode.RESIZE_FAILED, str(exc)) from exc

    async def _send_file(self, session: Session, params: dict[str, Any]) -> None:
        binding = self._require_binding(session)
        request = _validate(SendFileParams, params, ErrorCode.INVALID_PARAMS)
        data = _decode_base64(request.data)
        self._require_idle(session)
        session.start_transfer(transfer.send_file(session, binding, request, data))

    async def _receive_file(self, session: Session, params: dict[str, Any]) -> None:
        binding = self._require_binding(session)
        request = _validate(ReceiveFileParams, params, ErrorCode.INVALID_PARAMS)
        self._require_idle(session)
        session.start_transfer(transfer.receive_file(session, binding, request))

    @staticmethod
    def _require_binding(session: Session) -> Binding:
        binding = session.binding
        if binding is None:
            raise EnvelopeError(ErrorCode.NOT_CONNECTED, "no connection established")
        return binding

    @staticmethod
    def _require_idle(session: Session) -> None:
        if session.transfer_active:
            raise EnvelopeError(ErrorCode.TRANSFER_IN_PROGRESS, "a file transfer is already running")
