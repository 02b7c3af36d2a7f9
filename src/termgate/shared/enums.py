"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class MessageType(str, Enum):
    """Envelope types carried on the WebSocket channel."""

    DATA = "data"
    CONTROL = "control"
    STATUS = "status"
    ERROR = "error"
    FILE_TRANSFER = "file_transfer"


@unique
class ControlAction(str, Enum):
    """Actions accepted in a ``control`` envelope."""

    CONNECT = "connect"
    CONNECT_REMOTE = "connect_remote"
    DISCONNECT = "disconnect"
    RESIZE = "resize"
    SEND_FILE = "send_file"
    RECEIVE_FILE = "receive_file"


@unique
class TransferAction(str, Enum):
    """Lifecycle actions reported in a ``file_transfer`` envelope."""

    START = "start"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@unique
class TransferProtocol(str, Enum):
    """Block-transfer protocol variants selectable by the client."""

    XMODEM = "xmodem"
    XMODEM_1K = "xmodem1k"
    YMODEM = "ymodem"

    @property
    def uses_1k_blocks(self) -> bool:
        return self in (TransferProtocol.XMODEM_1K, TransferProtocol.YMODEM)


@unique
class SessionState(str, Enum):
    """Values of ``state`` in ``status`` envelopes."""

    READY = "ready"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    KEEPALIVE = "keepalive"


@unique
class ErrorCode(str, Enum):
    """Stable codes reported in ``error`` envelopes."""

    INVALID_MESSAGE = "INVALID_MESSAGE"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    INVALID_CONTROL = "INVALID_CONTROL"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_DATA = "INVALID_DATA"
    DECODE_ERROR = "DECODE_ERROR"
    NOT_CONNECTED = "NOT_CONNECTED"
    OPEN_FAILED = "OPEN_FAILED"
    REMOTE_CONNECT_FAILED = "REMOTE_CONNECT_FAILED"
    RESIZE_FAILED = "RESIZE_FAILED"
    WRITE_ERROR = "WRITE_ERROR"
    TRANSFER_IN_PROGRESS = "TRANSFER_IN_PROGRESS"


@unique
class TransportKind(str, Enum):
    """Kinds of transport a session can be bound to."""

    SERIAL = "serial"
    REMOTE_SHELL = "ssh"


@unique
class Parity(str, Enum):
    NONE = "none"
    ODD = "odd"
    EVEN = "even"
    MARK = "mark"
    SPACE = "space"


@unique
class FlowControl(str, Enum):
    NONE = "none"
    RTSCTS = "rtscts"
    XONXOFF = "xonxoff"


@unique
class AuthMethod(str, Enum):
    """SSH authentication methods."""

    PASSWORD = "password"
    PUBLIC_KEY = "publickey"
    KEYBOARD_INTERACTIVE = "keyboard-interactive"
