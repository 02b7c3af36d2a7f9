"""Protocol interfaces for the client side of a session."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ClientConnection(Protocol):
    """Text-frame channel to one browser client."""

    async def receive_text(self) -> str:
        """Return the next inbound frame.

        Raises:
            ClientDisconnected: If the peer went away.
        """
        ...

    async def send_text(self, text: str) -> None:
        """Send one frame.

        Raises:
            ClientDisconnected: If the peer went away.
        """
        ...

    async def close(self, code: int = 1000) -> None:
        """Close the channel with ``code``; a no-op once closed."""
        ...
