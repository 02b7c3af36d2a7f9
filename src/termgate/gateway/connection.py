"""Starlette WebSocket adapter for ``ClientConnection``."""

from __future__ import annotations

import logging

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from termgate.shared.exceptions import ClientDisconnected

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """Wrap an accepted WebSocket and normalise its disconnect errors."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def receive_text(self) -> str:
        try:
            message = await self._websocket.receive()
        except RuntimeError as exc:
            raise ClientDisconnected(str(exc)) from exc

        if message["type"] == "websocket.disconnect":
            raise ClientDisconnected(f"client disconnected (code {message.get('code', 1000)})")

        text = message.get("text")
        if text is not None:
            return text
        # Binary frames are treated as UTF-8 JSON.
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def send_text(self, text: str) -> None:
        try:
            await self._websocket.send_text(text)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise ClientDisconnected(f"send failed: {exc}") from exc

    async def close(self, code: int = 1000) -> None:
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            return
        if self._websocket.client_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._websocket.close(code=code)
        except (RuntimeError, OSError) as exc:
            logger.debug("websocket close failed: %s", exc)
