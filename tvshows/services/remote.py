"""Remote-control key events: a scoped event stream and key-code translation."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from .commands import (
    Command,
    InputMode,
    NextPart,
    PreviousPart,
    SeekBy,
    SetInputMode,
    SpeedDown,
    SpeedUp,
    TogglePause,
)

logger = logging.getLogger(__name__)

# Android KeyEvent codes sent by TV remotes
KEYCODE_DPAD_UP = 19
KEYCODE_DPAD_DOWN = 20
KEYCODE_DPAD_LEFT = 21
KEYCODE_DPAD_RIGHT = 22
KEYCODE_DPAD_CENTER = 23
KEYCODE_SPACE = 62
KEYCODE_ENTER = 66
KEYCODE_MEDIA_PLAY_PAUSE = 85
KEYCODE_MEDIA_NEXT = 87
KEYCODE_MEDIA_PREVIOUS = 88
KEYCODE_MEDIA_REWIND = 89
KEYCODE_MEDIA_FAST_FORWARD = 90

DEFAULT_SEEK_STEP = 15.0


@dataclass(frozen=True)
class KeyEvent:
    key_code: int
    event_time: str = ""


class RemoteInputRouter:
    """Stateless translation from a key event to a session command."""

    def __init__(self, seek_step: float = DEFAULT_SEEK_STEP):
        self.seek_step = seek_step

    def translate(self, event: KeyEvent, mode: InputMode = InputMode.SEEK) -> Command | None:
        code = event.key_code
        if code == KEYCODE_DPAD_LEFT:
            return SpeedDown() if mode is InputMode.SPEED else SeekBy(-self.seek_step)
        if code == KEYCODE_DPAD_RIGHT:
            return SpeedUp() if mode is InputMode.SPEED else SeekBy(self.seek_step)
        if code in (KEYCODE_DPAD_CENTER, KEYCODE_ENTER, KEYCODE_SPACE, KEYCODE_MEDIA_PLAY_PAUSE):
            return TogglePause()
        if code == KEYCODE_MEDIA_FAST_FORWARD:
            return SpeedUp()
        if code == KEYCODE_MEDIA_REWIND:
            return SpeedDown()
        if code == KEYCODE_MEDIA_NEXT:
            return NextPart()
        if code == KEYCODE_MEDIA_PREVIOUS:
            return PreviousPart()
        if code == KEYCODE_DPAD_UP:
            return SetInputMode(InputMode.SPEED)
        if code == KEYCODE_DPAD_DOWN:
            return SetInputMode(InputMode.SEEK)
        logger.info(f"Unmapped key code: {code}")
        return None


@dataclass
class _Subscription:
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    async def __aiter__(self) -> AsyncIterator[KeyEvent]:
        while True:
            yield await self.queue.get()


class KeyEventBus:
    """Delivers key events to whoever is subscribed at the time.

    Subscriptions are scoped: ``async with bus.subscribe() as events``
    yields an async iterator that stays registered until the block exits.
    Events published while nobody listens are dropped.
    """

    def __init__(self):
        self._subscribers: list[_Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: KeyEvent) -> int:
        logger.debug(f"Key event: {event.key_code}")
        for sub in self._subscribers:
            sub.queue.put_nowait(event)
        return len(self._subscribers)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[_Subscription]:
        sub = _Subscription()
        self._subscribers.append(sub)
        try:
            yield sub
        finally:
            self._subscribers.remove(sub)
