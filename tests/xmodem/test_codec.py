"""Tests for the XMODEM frame codec."""

from __future__ import annotations

import pytest

from termgate.xmodem import codec


class TestChecksums:
    def test_crc16_check_value(self) -> None:
        assert codec.crc16(b"123456789") == 0x31C3

    def test_crc16_empty_is_zero(self) -> None:
        assert codec.crc16(b"") == 0

    def test_checksum_wraps_mod_256(self) -> None:
        assert codec.checksum(bytes([0xFF, 0x02])) == 0x01

    def test_trailer_is_big_endian_crc(self) -> None:
        assert codec.trailer(b"123456789", use_crc=True) == b"\x31\xc3"
        assert codec.trailer(b"\x01\x02", use_crc=False) == b"\x03"


class TestFrames:
    def test_pad_block(self) -> None:
        block = codec.pad_block(b"abc", codec.BLOCK_SIZE)
        assert len(block) == 128
        assert block[:3] == b"abc"
        assert set(block[3:]) == {codec.PAD}

    def test_pad_block_rejects_oversized_chunk(self) -> None:
        with pytest.raises(ValueError):
            codec.pad_block(b"x" * 129, codec.BLOCK_SIZE)

    def test_build_frame_layout(self) -> None:
        block = codec.pad_block(b"hi", codec.BLOCK_SIZE)
        frame = codec.build_frame(1, block, use_crc=True)

        assert len(frame) == 3 + 128 + 2
        assert frame[0] == codec.SOH
        assert frame[1] == 1
        assert frame[2] == 0xFE
        assert frame[3:131] == block
        assert frame[131:] == codec.crc16(block).to_bytes(2, "big")

    def test_build_frame_1k_checksum(self) -> None:
        block = codec.pad_block(b"", codec.BLOCK_SIZE_1K)
        frame = codec.build_frame(256, block, use_crc=False)

        assert frame[0] == codec.STX
        assert frame[1:3] == b"\x00\xff"
        assert len(frame) == 3 + 1024 + 1

    def test_build_frame_rejects_odd_size(self) -> None:
        with pytest.raises(ValueError):
            codec.build_frame(1, b"short", use_crc=True)

    def test_verify_body_accepts_valid_frame(self) -> None:
        frame = codec.build_frame(7, codec.pad_block(b"data", 128), use_crc=True)
        assert codec.verify_body(frame[1:], 7, 128, use_crc=True) is None

    def test_verify_body_reasons(self) -> None:
        frame = codec.build_frame(7, codec.pad_block(b"data", 128), use_crc=False)
        body = bytearray(frame[1:])

        assert codec.verify_body(bytes(body[:-1]), 7, 128, use_crc=False) == "short frame"
        assert "mismatch" in codec.verify_body(bytes(body), 8, 128, use_crc=False)

        body[-1] ^= 0xFF
        assert codec.verify_body(bytes(body), 7, 128, use_crc=False) == "checksum error"

    def test_block_size_for(self) -> None:
        assert codec.block_size_for(codec.SOH) == 128
        assert codec.block_size_for(codec.STX) == 1024
        with pytest.raises(ValueError):
            codec.block_size_for(codec.EOT)
