"""Interactive SSH shell transport backed by paramiko."""

from __future__ import annotations

import asyncio
import io
import logging
import threading

import paramiko

from termgate.shared.enums import AuthMethod
from termgate.shared.exceptions import RemoteShellError, TransportClosedError, TransportError
from termgate.transport.interfaces import DataCallback
from termgate.transport.models import RemoteShellConfig

logger = logging.getLogger(__name__)

_HOST_KEY_POLICIES: dict[str, type[paramiko.MissingHostKeyPolicy]] = {
    "auto_add": paramiko.AutoAddPolicy,
    "warning": paramiko.WarningPolicy,
    "reject": paramiko.RejectPolicy,
}

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)

_RECV_SIZE = 32 * 1024
_BUFFER_LIMIT = 1024 * 1024


def load_private_key(config: RemoteShellConfig) -> paramiko.PKey:
    """Parse the configured private key; a key file takes precedence over inline PEM text.

    Raises:
        RemoteShellError: If no supported key type can parse it.
    """
    passphrase = config.private_key_passphrase or None
    failures: list[str] = []
    for key_class in _KEY_CLASSES:
        try:
            if config.private_key_path:
                return key_class.from_private_key_file(config.private_key_path, password=passphrase)
            return key_class.from_private_key(io.StringIO(config.private_key or ""), password=passphrase)
        except OSError as exc:
            raise RemoteShellError(f"failed to read private key file: {exc}") from exc
        except paramiko.SSHException as exc:
            failures.append(f"{key_class.__name__}: {exc}")
    raise RemoteShellError("failed to parse private key (" + "; ".join(failures) + ")")


def open_shell(
    config: RemoteShellConfig,
    *,
    host_key_policy: str = "auto_add",
    known_hosts_file: str = "",
) -> tuple[paramiko.SSHClient, paramiko.Channel]:
    """Connect, authenticate and start an interactive shell with a PTY (blocking).

    Raises:
        RemoteShellError: On connection, authentication or PTY failure.
    """
    policy = _HOST_KEY_POLICIES.get(host_key_policy)
    if policy is None:
        raise RemoteShellError(f"unknown host key policy: {host_key_policy}")

    client = paramiko.SSHClient()
    try:
        if known_hosts_file:
            client.load_host_keys(known_hosts_file)
        else:
            client.load_system_host_keys()
    except OSError as exc:
        logger.warning("could not load known hosts: %s", exc)
    client.set_missing_host_key_policy(policy())

    kwargs: dict[str, object] = {
        "hostname": config.host,
        "port": config.port,
        "username": config.username,
        "timeout": config.connect_timeout,
        "look_for_keys": False,
        "allow_agent": False,
    }
    if config.auth_method == AuthMethod.PUBLIC_KEY:
        kwargs["pkey"] = load_private_key(config)
    else:
        # paramiko falls back to keyboard-interactive with this password when
        # the server does not offer plain password authentication.
        kwargs["password"] = config.password or ""

    addr = f"{config.host}:{config.port}"
    try:
        client.connect(**kwargs)  # type: ignore[arg-type]
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise RemoteShellError(f"failed to connect to SSH server {addr}: {exc}") from exc

    try:
        channel = client.invoke_shell(term=config.terminal_type, width=config.cols, height=config.rows)
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise RemoteShellError(f"failed to start shell on {addr}: {exc}") from exc

    logger.info("ssh shell opened: %s@%s (%dx%d)", config.username, addr, config.cols, config.rows)
    return client, channel


class RemoteShellTransport:
    """``Transport`` over an SSH shell channel.

    A daemon thread receives channel output and hands it to the event loop.
    With a data callback set, output is pushed to the callback on the loop
    thread; without one it is buffered (oldest bytes dropped past 1 MiB) and
    served by ``read``.
    """

    def __init__(
        self,
        key: str,
        config: RemoteShellConfig,
        client: paramiko.SSHClient,
        channel: paramiko.Channel,
        *,
        loop: asyncio.AbstractEventLoop,
        read_timeout: float = 0.1,
        buffer_limit: int = _BUFFER_LIMIT,
    ) -> None:
        self._key = key
        self._config = config
        self._client = client
        self._channel = channel
        self._loop = loop
        self._read_timeout = read_timeout
        self._buffer_limit = buffer_limit
        self._buffer = bytearray()
        self._readable = asyncio.Event()
        self._callback: DataCallback | None = None
        self._stop = threading.Event()
        self._reader: threading.Thread | None = None
        self._eof = False
        self._closed = False

    @classmethod
    async def connect(
        cls,
        key: str,
        config: RemoteShellConfig,
        *,
        host_key_policy: str = "auto_add",
        known_hosts_file: str = "",
    ) -> RemoteShellTransport:
        client, channel = await asyncio.to_thread(
            open_shell,
            config,
            host_key_policy=host_key_policy,
            known_hosts_file=known_hosts_file,
        )
        transport = cls(key, config, client, channel, loop=asyncio.get_running_loop())
        transport.start()
        return transport

    @property
    def key(self) -> str:
        return self._key

    @property
    def config(self) -> RemoteShellConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the background output reader."""
        if self._reader is not None:
            return
        self._reader = threading.Thread(target=self._read_output, name=f"ssh-reader-{self._key}", daemon=True)
        self._reader.start()

    def set_data_callback(self, callback: DataCallback | None) -> None:
        """Push output to ``callback``; ``None`` switches back to buffered reads.

        Bytes buffered while no callback was set are flushed to the new callback.
        """
        self._callback = callback
        if callback is not None and self._buffer:
            pending = bytes(self._buffer)
            self._buffer.clear()
            callback(pending)

    async def read(self, size: int) -> bytes:
        if self._closed:
            raise TransportClosedError(f"remote shell {self._key} is closed")
        if not self._buffer:
            if self._eof:
                raise TransportClosedError(f"remote shell {self._key} ended")
            self._readable.clear()
            try:
                await asyncio.wait_for(self._readable.wait(), timeout=self._read_timeout)
            except asyncio.TimeoutError:
                return b""
            if self._closed:
                raise TransportClosedError(f"remote shell {self._key} is closed")
            if not self._buffer:
                if self._eof:
                    raise TransportClosedError(f"remote shell {self._key} ended")
                return b""

        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise TransportClosedError(f"remote shell {self._key} is closed")
        try:
            await asyncio.to_thread(self._channel.sendall, data)
        except (paramiko.SSHException, OSError) as exc:
            raise TransportError(f"write to remote shell failed: {exc}") from exc
        return len(data)

    async def resize(self, cols: int, rows: int) -> None:
        """Send a window-change request for the PTY."""
        if self._closed:
            raise TransportClosedError(f"remote shell {self._key} is closed")
        try:
            await asyncio.to_thread(self._channel.resize_pty, width=cols, height=rows)
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteShellError(f"resize failed: {exc}") from exc
        self._config = self._config.model_copy(update={"cols": cols, "rows": rows})

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._readable.set()
        await asyncio.to_thread(self._close_blocking)
        logger.info("closed remote shell %s", self._key)

    def _close_blocking(self) -> None:
        self._channel.close()
        self._client.close()

    # -- reader thread ------------------------------------------------------

    def _read_output(self) -> None:
        while not self._stop.is_set():
            try:
                data = self._channel.recv(_RECV_SIZE)
            except (paramiko.SSHException, OSError, EOFError) as exc:
                if not self._stop.is_set():
                    logger.info("remote shell %s reader stopped: %s", self._key, exc)
                break
            if not data:
                break
            try:
                self._loop.call_soon_threadsafe(self._deliver, data)
            except RuntimeError:
                # event loop already closed
                return
        try:
            self._loop.call_soon_threadsafe(self._mark_eof)
        except RuntimeError:
            pass

    def _deliver(self, data: bytes) -> None:
        if self._closed:
            return
        if self._callback is not None:
            self._callback(data)
            return
        self._buffer.extend(data)
        overflow = len(self._buffer) - self._buffer_limit
        if overflow > 0:
            logger.warning("remote shell %s buffer full, dropping %d oldest bytes", self._key, overflow)
            del self._buffer[:overflow]
        self._readable.set()

    def _mark_eof(self) -> None:
        self._eof = True
        self._readable.set()
