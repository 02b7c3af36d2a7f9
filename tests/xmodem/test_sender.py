"""Tests for XmodemSender."""

from __future__ import annotations

from typing import Any

import pytest

from termgate.shared.exceptions import TooManyRetries, TransferCancelled, TransferTimeout
from termgate.xmodem import codec
from termgate.xmodem.sender import XmodemSender

ACK = bytes([codec.ACK])
NAK = bytes([codec.NAK])
CAN = bytes([codec.CAN])


def _frames(writes: list[bytes]) -> list[bytes]:
    return [w for w in writes if w[0] in (codec.SOH, codec.STX)]


class TestXmodemSender:
    async def test_three_blocks_then_eot(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: ACK)
        progress: list[tuple[int, int]] = []
        sender = XmodemSender(transport, progress=lambda sent, total: progress.append((sent, total)))

        data = bytes(range(256)) + b"x" * 44
        await sender.send(data)

        frames = _frames(transport.writes)
        assert len(frames) == 3
        assert [f[1] for f in frames] == [1, 2, 3]
        assert all(len(f) == 3 + 128 + 2 for f in frames)
        assert frames[2][3 : 3 + 44] == b"x" * 44
        assert set(frames[2][3 + 44 : 3 + 128]) == {codec.PAD}
        assert transport.writes[-1] == bytes([codec.EOT])
        assert progress == [(128, 300), (256, 300), (300, 300)]

    async def test_nak_handshake_selects_checksum(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=NAK, responder=lambda _data: ACK)
        sender = XmodemSender(transport, use_crc=True)

        await sender.send(b"hello")

        assert sender.use_crc is False
        frame = _frames(transport.writes)[0]
        assert len(frame) == 3 + 128 + 1
        assert frame[-1] == codec.checksum(frame[3:131])

    async def test_1k_blocks_use_stx(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: ACK)
        sender = XmodemSender(transport, use_1k=True)

        await sender.send(b"z" * 1500)

        frames = _frames(transport.writes)
        assert [f[0] for f in frames] == [codec.STX, codec.STX]
        assert len(frames[1]) == 3 + 1024 + 2

    async def test_noise_before_handshake_is_ignored(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"\x00\x7fC", responder=lambda _data: ACK)

        await XmodemSender(transport).send(b"a")

        assert len(_frames(transport.writes)) == 1

    async def test_repeated_start_signals_are_discarded(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"CCC", responder=lambda _data: ACK)

        await XmodemSender(transport).send(b"one block")

        assert len(_frames(transport.writes)) == 1
        assert transport.writes[-1] == bytes([codec.EOT])
        assert len(transport.writes) == 2

    async def test_handshake_timeout_writes_nothing(self, scripted_transport: Any) -> None:
        transport = scripted_transport()
        sender = XmodemSender(transport, handshake_timeout=0.05)

        with pytest.raises(TransferTimeout):
            await sender.send(b"data")

        assert transport.writes == []

    async def test_cancel_during_handshake(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=CAN)

        with pytest.raises(TransferCancelled):
            await XmodemSender(transport).send(b"data")

    async def test_nak_retransmits_same_block(self, scripted_transport: Any, make_replies: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=make_replies(NAK, ACK, ACK))

        await XmodemSender(transport).send(b"retry me")

        frames = _frames(transport.writes)
        assert len(frames) == 2
        assert frames[0] == frames[1]

    async def test_cancel_during_block(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: CAN)

        with pytest.raises(TransferCancelled):
            await XmodemSender(transport).send(b"data")

    async def test_too_many_retries(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: NAK)
        sender = XmodemSender(transport, max_retries=3)

        with pytest.raises(TooManyRetries):
            await sender.send(b"data")

        assert len(transport.writes) == 3

    async def test_silent_receiver_counts_against_budget(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C")
        sender = XmodemSender(transport, response_timeout=0.01, max_retries=2)

        with pytest.raises(TooManyRetries):
            await sender.send(b"data")

        assert len(transport.writes) == 2

    async def test_unacknowledged_eot_times_out(self, scripted_transport: Any, make_replies: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=make_replies(ACK))
        sender = XmodemSender(transport, response_timeout=0.01, max_retries=2)

        with pytest.raises(TransferTimeout):
            await sender.send(b"data")

        assert transport.writes[1:] == [bytes([codec.EOT])] * 2

    async def test_block_numbers_wrap(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: ACK)

        await XmodemSender(transport).send(b"w" * (257 * 128))

        numbers = [f[1] for f in _frames(transport.writes)]
        assert numbers[254:] == [255, 0, 1]
        assert all(f[2] == 0xFF - f[1] for f in _frames(transport.writes))

    async def test_empty_payload_sends_only_eot(self, scripted_transport: Any) -> None:
        transport = scripted_transport(inbox=b"C", responder=lambda _data: ACK)

        await XmodemSender(transport).send(b"")

        assert transport.writes == [bytes([codec.EOT])]
