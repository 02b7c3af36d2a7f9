"""Serial device catalog built on ``serial.tools.list_ports``."""

from __future__ import annotations

import logging

from serial.tools import list_ports
from serial.tools.list_ports_common import ListPortInfo

from termgate.shared.exceptions import SerialPortError
from termgate.transport.models import PortInfo

logger = logging.getLogger(__name__)


def describe_port(port: ListPortInfo) -> str:
    """Return a human-readable description for a catalog entry."""
    if port.product:
        return port.product

    if port.vid is not None:
        if port.pid is not None:
            return f"USB Serial - VID:{port.vid:04X} PID:{port.pid:04X}"
        return "USB Serial"

    return "Serial Port"


def list_serial_ports() -> list[PortInfo]:
    """Enumerate serial devices visible to the host.

    Raises:
        SerialPortError: If the platform enumeration fails.
    """
    try:
        ports = list_ports.comports()
    except OSError as exc:
        raise SerialPortError(f"failed to enumerate serial ports: {exc}") from exc

    result: list[PortInfo] = []
    for port in ports:
        is_usb = port.vid is not None
        info = PortInfo(
            name=port.device,
            description=describe_port(port),
            is_usb=is_usb,
            vid=f"{port.vid:04X}" if is_usb else None,
            pid=f"{port.pid:04X}" if is_usb and port.pid is not None else None,
            serial_number=port.serial_number if is_usb else None,
        )
        result.append(info)
        logger.debug("found port %s (usb=%s)", info.name, info.is_usb)
    return result
