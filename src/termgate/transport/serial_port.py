"""Serial device transport backed by pyserial."""

from __future__ import annotations

import asyncio
import logging
import threading

import serial

from termgate.shared.enums import FlowControl, Parity
from termgate.shared.exceptions import SerialPortError, TransportClosedError, TransportError
from termgate.transport.models import SerialConfig

logger = logging.getLogger(__name__)

_PARITY = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
    Parity.MARK: serial.PARITY_MARK,
    Parity.SPACE: serial.PARITY_SPACE,
}

_STOP_BITS = {
    1: serial.STOPBITS_ONE,
    1.5: serial.STOPBITS_ONE_POINT_FIVE,
    2: serial.STOPBITS_TWO,
}


def open_serial(config: SerialConfig) -> serial.Serial:
    """Open and configure a ``serial.Serial`` for ``config`` (blocking).

    Raises:
        SerialPortError: If the device cannot be opened.
    """
    try:
        port = serial.Serial(
            port=config.port,
            baudrate=config.baud_rate,
            bytesize=config.data_bits,
            parity=_PARITY[config.parity],
            stopbits=_STOP_BITS[config.stop_bits],
            timeout=config.read_timeout,
            xonxoff=config.flow_control == FlowControl.XONXOFF,
            rtscts=config.flow_control == FlowControl.RTSCTS,
        )
    except (serial.SerialException, ValueError) as exc:
        message = str(exc)
        if "Permission denied" in message:
            raise SerialPortError(
                f"permission denied accessing {config.port}; add your user to the 'dialout' group"
            ) from exc
        if "No such file" in message or "not found" in message.lower():
            raise SerialPortError(f"serial port not found: {config.port}") from exc
        if "busy" in message.lower():
            raise SerialPortError(f"serial port {config.port} is busy") from exc
        raise SerialPortError(f"failed to open port {config.port}: {exc}") from exc

    logger.info("opened serial port %s at %d baud", config.port, config.baud_rate)
    return port


class SerialTransport:
    """``Transport`` over one open serial device.

    Blocking pyserial calls run in worker threads. ``close`` waits for an
    in-flight read (bounded by ``read_timeout``) before releasing the device.
    """

    def __init__(self, port: serial.Serial, config: SerialConfig) -> None:
        self._port = port
        self._config = config
        self._read_lock = threading.Lock()
        self._closed = False

    @classmethod
    async def open(cls, config: SerialConfig) -> SerialTransport:
        port = await asyncio.to_thread(open_serial, config)
        return cls(port, config)

    @property
    def key(self) -> str:
        return self._config.port

    @property
    def config(self) -> SerialConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int) -> bytes:
        self._check_open()
        return await asyncio.to_thread(self._read_blocking, size)

    async def write(self, data: bytes) -> int:
        self._check_open()
        try:
            written = await asyncio.to_thread(self._port.write, data)
        except serial.SerialException as exc:
            raise TransportError(f"write to {self.key} failed: {exc}") from exc
        return written if written is not None else len(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._close_blocking)
        logger.info("closed serial port %s", self.key)

    async def set_dtr(self, value: bool) -> None:
        """Assert or release Data Terminal Ready."""
        await self._set_line("dtr", value)

    async def set_rts(self, value: bool) -> None:
        """Assert or release Request To Send."""
        await self._set_line("rts", value)

    async def _set_line(self, name: str, value: bool) -> None:
        self._check_open()
        try:
            await asyncio.to_thread(setattr, self._port, name, value)
        except serial.SerialException as exc:
            raise TransportError(f"setting {name.upper()} on {self.key} failed: {exc}") from exc

    def _check_open(self) -> None:
        if self._closed:
            raise TransportClosedError(f"serial port {self.key} is closed")

    def _read_blocking(self, size: int) -> bytes:
        with self._read_lock:
            if self._closed:
                raise TransportClosedError(f"serial port {self.key} is closed")
            try:
                # Wait up to read_timeout for the first byte, then take whatever is buffered.
                data = self._port.read(1)
                if data and size > 1:
                    waiting = self._port.in_waiting
                    if waiting:
                        data += self._port.read(min(size - 1, waiting))
            except serial.SerialException as exc:
                raise TransportError(f"read from {self.key} failed: {exc}") from exc
        return data

    def _close_blocking(self) -> None:
        with self._read_lock:
            try:
                self._port.close()
            except (serial.SerialException, OSError) as exc:
                logger.warning("error closing serial port %s: %s", self.key, exc)
