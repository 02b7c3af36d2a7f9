"""Frozen Pydantic models for the WebSocket envelope and its payloads."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field, field_validator

from termgate.shared.enums import TransferAction, TransferProtocol


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds for envelope stamps."""
    return int(time.time() * 1000)


class Envelope(BaseModel):
    """One message on the multiplexed channel.

    ``type`` is kept as a plain string so that unknown types reach the hub and
    are answered with an error envelope instead of failing validation.
    """

    model_config = {"frozen": True}

    type: str
    session_id: str = ""
    payload: Any = None
    timestamp: int = Field(default_factory=now_ms)


# ── Payloads ───────────────────────────────────────────────────


class DataPayload(BaseModel):
    """Terminal bytes, base64 encoded unless ``encoding`` is ``raw``."""

    model_config = {"frozen": True}

    data: str
    encoding: str = "base64"


class ControlPayload(BaseModel):
    model_config = {"frozen": True}

    action: str
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class StatusPayload(BaseModel):
    model_config = {"frozen": True}

    state: str
    message: str | None = None


class ErrorPayload(BaseModel):
    model_config = {"frozen": True}

    code: str
    message: str


class FileTransferPayload(BaseModel):
    """Progress and outcome of one send/receive.

    On a successful receive ``message`` carries the received bytes, base64
    encoded.
    """

    model_config = {"frozen": True}

    action: TransferAction
    file_name: str | None = None
    file_size: int | None = None
    sent: int | None = None
    received: int | None = None
    message: str | None = None
    error: str | None = None


# ── Control params ─────────────────────────────────────────────


class ResizeParams(BaseModel):
    model_config = {"frozen": True}

    cols: int = Field(ge=1)
    rows: int = Field(ge=1)


class SendFileParams(BaseModel):
    """Params of ``send_file``; ``data`` is the base64 file content."""

    model_config = {"frozen": True}

    data: str
    file_name: str = "file.bin"
    protocol: TransferProtocol = TransferProtocol.XMODEM

    @field_validator("file_name", mode="before")
    @classmethod
    def _default_file_name(cls, value: Any) -> Any:
        return value or "file.bin"


class ReceiveFileParams(BaseModel):
    """Params of ``receive_file``.

    Plain ``xmodem`` selects checksum mode; every other protocol, or none at
    all, selects CRC mode.
    """

    model_config = {"frozen": True}

    file_name: str = "received_file.bin"
    protocol: TransferProtocol | None = None

    @field_validator("file_name", mode="before")
    @classmethod
    def _default_file_name(cls, value: Any) -> Any:
        return value or "received_file.bin"

    @property
    def use_crc(self) -> bool:
        return self.protocol != TransferProtocol.XMODEM
