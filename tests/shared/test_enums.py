"""Tests for shared enum definitions."""

from __future__ import annotations

from termgate.shared.enums import ControlAction, ErrorCode, MessageType, SessionState, TransferProtocol


class TestMessageType:
    def test_all_types_present(self) -> None:
        expected = {"data", "control", "status", "error", "file_transfer"}
        assert {t.value for t in MessageType} == expected

    def test_string_value(self) -> None:
        assert MessageType.FILE_TRANSFER == "file_transfer"


class TestControlAction:
    def test_all_actions_present(self) -> None:
        expected = {"connect", "connect_remote", "disconnect", "resize", "send_file", "receive_file"}
        assert {a.value for a in ControlAction} == expected


class TestSessionState:
    def test_all_states_present(self) -> None:
        assert {s.value for s in SessionState} == {"ready", "connected", "disconnected", "keepalive"}


class TestTransferProtocol:
    def test_block_size_selection(self) -> None:
        assert TransferProtocol.XMODEM.uses_1k_blocks is False
        assert TransferProtocol.XMODEM_1K.uses_1k_blocks is True
        assert TransferProtocol.YMODEM.uses_1k_blocks is True


class TestErrorCode:
    def test_codes_are_their_names(self) -> None:
        assert all(code.value == code.name for code in ErrorCode)
        assert ErrorCode("TRANSFER_IN_PROGRESS") is ErrorCode.TRANSFER_IN_PROGRESS
