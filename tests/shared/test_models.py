"""Tests for frozen Pydantic envelope and parameter models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from termgate.shared.enums import TransferProtocol
from termgate.shared.models import (
    ControlPayload,
    DataPayload,
    Envelope,
    ReceiveFileParams,
    ResizeParams,
    SendFileParams,
)


class TestEnvelope:
    def test_defaults(self) -> None:
        env = Envelope(type="status")
        assert env.session_id == ""
        assert env.payload is None
        assert env.timestamp > 1_600_000_000_000

    def test_unknown_type_still_parses(self) -> None:
        env = Envelope.model_validate_json(json.dumps({"type": "telemetry", "payload": {"x": 1}}))
        assert env.type == "telemetry"
        assert env.payload == {"x": 1}

    def test_frozen_raises_on_mutation(self) -> None:
        env = Envelope(type="data")
        with pytest.raises(ValidationError):
            env.type = "control"  # type: ignore[misc]

    def test_missing_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Envelope.model_validate_json('{"payload": {}}')


class TestPayloads:
    def test_data_defaults_to_base64(self) -> None:
        assert DataPayload(data="aGk=").encoding == "base64"

    def test_control_params_none_is_empty(self) -> None:
        ctrl = ControlPayload.model_validate({"action": "disconnect", "params": None})
        assert ctrl.params == {}

    def test_resize_requires_positive_dimensions(self) -> None:
        with pytest.raises(ValidationError):
            ResizeParams(cols=0, rows=24)


class TestTransferParams:
    def test_send_defaults(self) -> None:
        params = SendFileParams.model_validate({"data": "aGk=", "file_name": None})
        assert params.file_name == "file.bin"
        assert params.protocol == TransferProtocol.XMODEM

    def test_send_rejects_unknown_protocol(self) -> None:
        with pytest.raises(ValidationError):
            SendFileParams(data="aGk=", protocol="kermit")  # type: ignore[arg-type]

    def test_receive_mode_selection(self) -> None:
        assert ReceiveFileParams().use_crc is True
        assert ReceiveFileParams(protocol=TransferProtocol.YMODEM).use_crc is True
        assert ReceiveFileParams(protocol=TransferProtocol.XMODEM).use_crc is False
        assert ReceiveFileParams(file_name="").file_name == "received_file.bin"
