"""XMODEM frame codec: control bytes, checksum, CRC-16 and frame layout."""

from __future__ import annotations

import crcmod.predefined

# Control bytes
SOH = 0x01  # start of 128-byte block
STX = 0x02  # start of 1024-byte block
EOT = 0x04
ACK = 0x06
NAK = 0x15
CAN = 0x18
CRC_START = ord("C")
PAD = 0x1A

BLOCK_SIZE = 128
BLOCK_SIZE_1K = 1024

_crc16_xmodem = crcmod.predefined.mkCrcFun("xmodem")


def checksum(data: bytes) -> int:
    """Return the 8-bit additive checksum (sum mod 256)."""
    return sum(data) & 0xFF


def crc16(data: bytes) -> int:
    """Return CRC-16/XMODEM: poly 0x1021, init 0, no reflection, no final xor."""
    return _crc16_xmodem(data)


def trailer(data: bytes, *, use_crc: bool) -> bytes:
    """Return the frame trailer: big-endian CRC (2 bytes) or checksum (1 byte)."""
    if use_crc:
        return crc16(data).to_bytes(2, "big")
    return bytes([checksum(data)])


def trailer_size(use_crc: bool) -> int:
    return 2 if use_crc else 1


def block_size_for(header: int) -> int:
    if header == SOH:
        return BLOCK_SIZE
    if header == STX:
        return BLOCK_SIZE_1K
    raise ValueError(f"not a block header: 0x{header:02X}")


def pad_block(chunk: bytes, size: int) -> bytes:
    """Right-pad ``chunk`` with ``PAD`` up to ``size`` bytes."""
    if len(chunk) > size:
        raise ValueError(f"chunk of {len(chunk)} bytes does not fit a {size}-byte block")
    return chunk + bytes([PAD]) * (size - len(chunk))


def build_frame(block_number: int, block: bytes, *, use_crc: bool) -> bytes:
    """Assemble header + number + complement + data + trailer.

    ``block`` must already be exactly 128 or 1024 bytes.
    """
    if len(block) == BLOCK_SIZE:
        header = SOH
    elif len(block) == BLOCK_SIZE_1K:
        header = STX
    else:
        raise ValueError(f"block must be {BLOCK_SIZE} or {BLOCK_SIZE_1K} bytes, got {len(block)}")

    number = block_number & 0xFF
    return bytes([header, number, 0xFF - number]) + block + trailer(block, use_crc=use_crc)


def verify_body(body: bytes, expected_number: int, block_size: int, *, use_crc: bool) -> str | None:
    """Check a frame body (everything after the header byte).

    Returns ``None`` when the body is valid, otherwise a short reason.
    """
    if len(body) != 2 + block_size + trailer_size(use_crc):
        return "short frame"

    expected = expected_number & 0xFF
    if body[0] != expected or body[1] != 0xFF - expected:
        return f"block number mismatch: got {body[0]}/{body[1]}, expected {expected}"

    data = body[2 : 2 + block_size]
    if body[2 + block_size :] != trailer(data, use_crc=use_crc):
        return "crc error" if use_crc else "checksum error"
    return None
