"""WebSocket origin policy."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from termgate.config import Settings

logger = logging.getLogger(__name__)


class OriginPolicy:
    """Decide which browser origins may open a session.

    ``*`` in the allow-list accepts every origin. A request without an
    ``Origin`` header comes from a non-browser client and is accepted.
    """

    def __init__(self, allowed: Iterable[str]) -> None:
        self._allowed = {_normalise(origin) for origin in allowed if origin}
        self._allow_all = "*" in self._allowed

    @classmethod
    def from_settings(cls, settings: Settings) -> OriginPolicy:
        return cls(settings.origins)

    @property
    def allow_all(self) -> bool:
        return self._allow_all

    def is_allowed(self, origin: str | None) -> bool:
        if self._allow_all or not origin:
            return True
        allowed = _normalise(origin) in self._allowed
        if not allowed:
            logger.warning("rejecting websocket from origin %s", origin)
        return allowed


def _normalise(origin: str) -> str:
    return origin.strip().rstrip("/").lower()
