"""Hierarchical exception types for the termgate gateway."""

from __future__ import annotations


class TermgateError(Exception):
    """Base exception for all termgate errors."""


# ── Envelope ───────────────────────────────────────────────────


class EnvelopeError(TermgateError):
    """An inbound envelope could not be decoded or validated."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# ── Transports ─────────────────────────────────────────────────


class TransportError(TermgateError):
    """Reading, writing or opening a byte-stream transport failed."""


class TransportClosedError(TransportError):
    """The transport was closed (locally or by a take-over)."""


class SerialPortError(TransportError):
    """Serial device could not be opened or driven."""


class RemoteShellError(TransportError):
    """SSH connection, authentication or PTY setup failed."""


# ── Block transfer ─────────────────────────────────────────────


class TransferError(TermgateError):
    """XMODEM transfer failed."""


class TransferTimeout(TransferError):
    """Peer did not answer within the protocol window."""

    def __init__(self, message: str = "timeout") -> None:
        super().__init__(message)


class TransferCancelled(TransferError):
    """Peer sent CAN."""

    def __init__(self, message: str = "cancelled") -> None:
        super().__init__(message)


class TooManyRetries(TransferError):
    """Retry budget for a single block was exhausted."""

    def __init__(self, message: str = "too many retries") -> None:
        super().__init__(message)


# ── Client connection ──────────────────────────────────────────


class ClientDisconnected(TermgateError):
    """The WebSocket peer went away or a frame could not be exchanged."""
