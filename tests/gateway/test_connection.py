"""Tests for the WebSocket adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from termgate.gateway.connection import WebSocketConnection
from termgate.shared.exceptions import ClientDisconnected


def _websocket(*messages: dict) -> MagicMock:
    websocket = MagicMock()
    websocket.receive = AsyncMock(side_effect=list(messages))
    websocket.send_text = AsyncMock()
    websocket.close = AsyncMock()
    websocket.application_state = WebSocketState.CONNECTED
    websocket.client_state = WebSocketState.CONNECTED
    return websocket


class TestWebSocketConnection:
    async def test_text_and_binary_frames(self) -> None:
        websocket = _websocket(
            {"type": "websocket.receive", "text": '{"type":"data"}'},
            {"type": "websocket.receive", "bytes": b'{"type":"status"}'},
        )
        connection = WebSocketConnection(websocket)

        assert await connection.receive_text() == '{"type":"data"}'
        assert await connection.receive_text() == '{"type":"status"}'

    async def test_disconnect_frame(self) -> None:
        connection = WebSocketConnection(_websocket({"type": "websocket.disconnect", "code": 1001}))

        with pytest.raises(ClientDisconnected, match="1001"):
            await connection.receive_text()

    async def test_send_failure_is_normalised(self) -> None:
        websocket = _websocket()
        websocket.send_text.side_effect = WebSocketDisconnect(1006)
        connection = WebSocketConnection(websocket)

        with pytest.raises(ClientDisconnected, match="send failed"):
            await connection.send_text("{}")

    async def test_close_skipped_after_disconnect(self) -> None:
        websocket = _websocket()
        websocket.client_state = WebSocketState.DISCONNECTED
        connection = WebSocketConnection(websocket)

        await connection.close(1000)

        websocket.close.assert_not_awaited()

    async def test_close_errors_are_absorbed(self) -> None:
        websocket = _websocket()
        websocket.close.side_effect = RuntimeError("already closed")
        connection = WebSocketConnection(websocket)

        await connection.close(1011)

        websocket.close.assert_awaited_once_with(code=1011)
