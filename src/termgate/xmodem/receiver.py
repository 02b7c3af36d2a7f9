"""XMODEM receiver state machine (checksum, CRC and 1K variants)."""

from __future__ import annotations

import asyncio
import logging

from termgate.shared.exceptions import TooManyRetries, TransferCancelled, TransferTimeout
from termgate.transport.interfaces import Transport
from termgate.xmodem import codec
from termgate.xmodem.sender import MAX_RETRIES, RESPONSE_TIMEOUT, ProgressCallback
from termgate.xmodem.stream import read_byte, read_exact

logger = logging.getLogger(__name__)

START_INTERVAL = 1.0
START_RETRIES = 10

_FRAME_HEADERS = (codec.SOH, codec.STX, codec.EOT)


class XmodemReceiver:
    """Receive one payload over a transport.

    Blocks are appended verbatim, including any trailing ``0x1A`` padding:
    the protocol carries no final length.

    The header byte that ends the start handshake is kept and parsed as the
    header of the first block. A running ``receive`` can only be aborted by
    closing the transport.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        use_crc: bool = True,
        progress: ProgressCallback | None = None,
        start_interval: float = START_INTERVAL,
        start_retries: int = START_RETRIES,
        response_timeout: float = RESPONSE_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self._transport = transport
        self._progress = progress
        self._start_interval = start_interval
        self._start_retries = start_retries
        self._response_timeout = response_timeout
        self._max_retries = max_retries
        self.use_crc = use_crc

    async def receive(self) -> bytes:
        """Run the handshake and collect blocks until EOT.

        Raises:
            TransferTimeout: No first frame after all start signals, or the
                sender went silent for ``max_retries`` windows.
            TransferCancelled: The sender sent CAN.
            TooManyRetries: ``max_retries`` consecutive frames were rejected.
            TransportError: The transport failed or was closed.
        """
        pending: int | None = await self._handshake()
        buf = bytearray()
        expected = 1
        failures = 0

        while True:
            header = pending if pending is not None else await read_byte(self._transport, self._response_timeout)
            pending = None

            if header is None:
                failures += 1
                await self._reply(codec.NAK)
                if failures >= self._max_retries:
                    raise TransferTimeout(f"no frame for block {expected} after {failures} attempts")
                continue

            if header == codec.EOT:
                await self._reply(codec.ACK)
                logger.info("xmodem receive complete: %d bytes", len(buf))
                return bytes(buf)

            if header == codec.CAN:
                raise TransferCancelled(f"sender cancelled at block {expected}")

            if header not in (codec.SOH, codec.STX):
                logger.debug("ignoring byte 0x%02X while waiting for block header", header)
                continue

            size = codec.block_size_for(header)
            remainder = 2 + size + codec.trailer_size(self.use_crc)
            body = await read_exact(self._transport, remainder, self._response_timeout)
            reason = codec.verify_body(body, expected, size, use_crc=self.use_crc)
            if reason is not None:
                failures += 1
                logger.debug("rejecting block %d: %s", expected & 0xFF, reason)
                await self._reply(codec.NAK)
                if failures >= self._max_retries:
                    raise TooManyRetries(f"block {expected & 0xFF} rejected {failures} times: {reason}")
                continue

            buf.extend(body[2 : 2 + size])
            failures = 0
            await self._reply(codec.ACK)
            expected = (expected + 1) & 0xFF
            if self._progress is not None:
                self._progress(len(buf), 0)

    async def _handshake(self) -> int:
        """Send the start signal until a frame header arrives and return that header."""
        start = codec.CRC_START if self.use_crc else codec.NAK
        loop = asyncio.get_running_loop()

        for attempt in range(1, self._start_retries + 1):
            await self._reply(start)
            deadline = loop.time() + self._start_interval
            while True:
                byte = await read_byte(self._transport, deadline - loop.time())
                if byte is None:
                    break
                if byte in _FRAME_HEADERS:
                    logger.debug("sender answered start signal on attempt %d", attempt)
                    return byte
                if byte == codec.CAN:
                    raise TransferCancelled("sender cancelled before first block")
            logger.debug("no answer to start signal (attempt %d)", attempt)

        raise TransferTimeout(f"sender did not start after {self._start_retries} start signals")

    async def _reply(self, byte: int) -> None:
        await self._transport.write(bytes([byte]))
