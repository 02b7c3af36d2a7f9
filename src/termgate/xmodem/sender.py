"""XMODEM sender state machine (checksum, CRC and 1K variants)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from termgate.shared.exceptions import TooManyRetries, TransferCancelled, TransferTimeout
from termgate.transport.interfaces import Transport
from termgate.xmodem import codec
from termgate.xmodem.stream import read_byte

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

HANDSHAKE_TIMEOUT = 30.0
RESPONSE_TIMEOUT = 3.0
MAX_RETRIES = 10
PURGE_SIZE = 64


class XmodemSender:
    """Send one payload over a transport.

    The receiver picks the trailer format: NAK asks for checksum mode, ``C``
    for CRC mode. ``use_crc`` reflects the negotiated mode once ``send`` has
    passed the handshake.

    A running ``send`` has no cancel token. It can only be aborted by closing
    the transport, which makes the next read or write raise
    ``TransportError``.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        use_1k: bool = False,
        use_crc: bool = True,
        progress: ProgressCallback | None = None,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        response_timeout: float = RESPONSE_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self._transport = transport
        self._progress = progress
        self._handshake_timeout = handshake_timeout
        self._response_timeout = response_timeout
        self._max_retries = max_retries
        self.use_1k = use_1k
        self.use_crc = use_crc

    @property
    def block_size(self) -> int:
        return codec.BLOCK_SIZE_1K if self.use_1k else codec.BLOCK_SIZE

    async def send(self, data: bytes) -> None:
        """Run handshake, data blocks and EOT.

        Raises:
            TransferTimeout: No handshake within the window, or EOT never acknowledged.
            TransferCancelled: The receiver sent CAN.
            TooManyRetries: A block was rejected or unanswered ``max_retries`` times.
            TransportError: The transport failed or was closed.
        """
        await self._wait_for_handshake()

        total = len(data)
        size = self.block_size
        block_number = 1
        offset = 0
        while offset < total:
            chunk = data[offset : offset + size]
            frame = codec.build_frame(block_number, codec.pad_block(chunk, size), use_crc=self.use_crc)
            await self._send_frame(block_number, frame)

            offset += len(chunk)
            block_number = (block_number + 1) & 0xFF
            if self._progress is not None:
                self._progress(offset, total)

        await self._send_eot()
        logger.info("xmodem send complete: %d bytes", total)

    async def _wait_for_handshake(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._handshake_timeout
        while True:
            byte = await read_byte(self._transport, deadline - loop.time())
            if byte is None:
                raise TransferTimeout(f"no handshake from receiver within {self._handshake_timeout:g}s")
            if byte == codec.NAK:
                self.use_crc = False
                break
            if byte == codec.CRC_START:
                self.use_crc = True
                break
            if byte == codec.CAN:
                raise TransferCancelled("receiver cancelled before first block")
            logger.debug("ignoring byte 0x%02X while waiting for handshake", byte)
        logger.debug("handshake received, mode=%s block=%d", "crc" if self.use_crc else "checksum", self.block_size)
        await self._purge_input()

    async def _purge_input(self) -> None:
        """Discard repeated start signals the receiver queued before it saw block 1."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._response_timeout
        dropped = 0
        while loop.time() < deadline:
            data = await self._transport.read(PURGE_SIZE)
            if not data:
                break
            dropped += len(data)
        if dropped:
            logger.debug("discarded %d stale bytes after handshake", dropped)

    async def _send_frame(self, block_number: int, frame: bytes) -> None:
        for attempt in range(1, self._max_retries + 1):
            await self._transport.write(frame)

            response = await read_byte(self._transport, self._response_timeout)
            if response == codec.ACK:
                return
            if response == codec.CAN:
                raise TransferCancelled(f"receiver cancelled at block {block_number}")
            if response is None:
                logger.debug("block %d: no response (attempt %d)", block_number, attempt)
            else:
                logger.debug("block %d: got 0x%02X (attempt %d)", block_number, response, attempt)

        raise TooManyRetries(f"block {block_number} failed after {self._max_retries} attempts")

    async def _send_eot(self) -> None:
        for attempt in range(1, self._max_retries + 1):
            await self._transport.write(bytes([codec.EOT]))

            response = await read_byte(self._transport, self._response_timeout)
            if response == codec.ACK:
                return
            if response == codec.CAN:
                raise TransferCancelled("receiver cancelled at end of transmission")
            logger.debug("eot not acknowledged (attempt %d)", attempt)

        raise TransferTimeout("end of transmission was never acknowledged")
