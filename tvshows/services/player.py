"""Playback backends driven by a PlaybackSession."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)


class Player:
    """Interface of the device that actually renders video.

    The base implementation only logs, which is enough for sessions
    whose state is read by polling ``PlaybackSession.snapshot()``.
    """

    async def load(self, url: str, title: str = "") -> None:
        logger.info(f"Player load: {title} ({url})")

    async def seek(self, position: float) -> None:
        logger.debug(f"Player seek: {position:.1f}s")

    async def set_speed(self, speed: float) -> None:
        logger.debug(f"Player speed: {speed}x")

    async def pause(self) -> None:
        logger.debug("Player pause")

    async def resume(self) -> None:
        logger.debug("Player resume")

    async def stop(self) -> None:
        logger.debug("Player stop")


class BrowserPlayer(Player):
    """Queues directives for a browser/WebView <video> element to poll.

    The browser reports progress, end of part and errors back through the
    player shell, which turns them into session commands.
    """

    def __init__(self, maxlen: int = 100):
        self.directives: deque[dict[str, Any]] = deque(maxlen=maxlen)

    def _push(self, action: str, **params: Any) -> None:
        self.directives.append({"action": action, **params})

    async def load(self, url: str, title: str = "") -> None:
        await super().load(url, title)
        self._push("load", url=url, title=title)

    async def seek(self, position: float) -> None:
        self._push("seek", position=position)

    async def set_speed(self, speed: float) -> None:
        self._push("speed", speed=speed)

    async def pause(self) -> None:
        self._push("pause")

    async def resume(self) -> None:
        self._push("resume")

    async def stop(self) -> None:
        self._push("stop")

    def drain(self) -> list[dict[str, Any]]:
        """Return and clear the pending directives, oldest first."""
        items = list(self.directives)
        self.directives.clear()
        return items
