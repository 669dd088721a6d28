"""Playback session for one episode: part sequencing, pause/speed/seek state.

A session is created for an episode, loads its parts, then only changes
through commands passed to ``dispatch()``. Commands are handled one at a
time in the order they were submitted. Remote-control keys reach the
session through a KeyEventBus subscription that lives exactly as long
as the ``async with session:`` block.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable

from ..errors import EmptyResultError, FetchError, PlaybackError, TvShowsError
from .catalog import EpisodeCatalog, Part
from .commands import (
    NEEDS_PARTS,
    Command,
    InputMode,
    JumpToPart,
    NextPart,
    PartEnded,
    PlaybackFailed,
    PreviousPart,
    ProgressUpdate,
    SeekBy,
    SeekTo,
    SetInputMode,
    SpeedDown,
    SpeedUp,
    TogglePause,
)
from .continuation import ContinuationResolver
from .notices import Notices
from .player import Player
from .remote import KeyEventBus, RemoteInputRouter

logger = logging.getLogger(__name__)

SPEEDS = (0.5, 1.0, 2.0, 3.0)
MIN_SPEED = SPEEDS[0]
MAX_SPEED = SPEEDS[-1]


class Phase(str, Enum):
    LOADING = "loading"
    SELECTING = "selecting"  # Part list shown, nothing playing yet
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    FAILED = "failed"


@dataclass(frozen=True)
class Playing:
    speed: float = 1.0

    def __post_init__(self):
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(f"Speed {self.speed} outside {MIN_SPEED}..{MAX_SPEED}")


@dataclass(frozen=True)
class Paused:
    """Paused playback always resumes at normal speed."""


Mode = Playing | Paused


def step_speed(speed: float, up: bool) -> float:
    """Next speed in SPEEDS, clamped at both ends; unknown speeds reset to 1."""
    if speed not in SPEEDS:
        return 1.0
    index = SPEEDS.index(speed) + (1 if up else -1)
    return SPEEDS[max(0, min(len(SPEEDS) - 1, index))]


@dataclass(frozen=True)
class PlaybackState:
    part_index: int = 0
    mode: Mode = field(default_factory=Playing)
    current_time: float = 0.0
    total_duration: float = 0.0

    @property
    def paused(self) -> bool:
        return isinstance(self.mode, Paused)

    @property
    def speed(self) -> float:
        return self.mode.speed if isinstance(self.mode, Playing) else 1.0

    def to_dict(self) -> dict:
        return {
            "part_index": self.part_index,
            "paused": self.paused,
            "speed": self.speed,
            "current_time": self.current_time,
            "total_duration": self.total_duration,
        }


ContinueHook = Callable[[str], Awaitable[None]]


class PlaybackSession:
    """State machine over the ordered parts of one episode."""

    def __init__(
        self,
        channel: str,
        show: str,
        episode: str,
        catalog: EpisodeCatalog,
        player: Player | None = None,
        resolver: ContinuationResolver | None = None,
        notices: Notices | None = None,
        key_bus: KeyEventBus | None = None,
        router: RemoteInputRouter | None = None,
        autoplay: bool = True,
        start_paused: bool = False,
        on_continue: ContinueHook | None = None,
    ):
        self.channel = channel
        self.show = show
        self.episode = episode
        self.catalog = catalog
        self.player = player or Player()
        self.resolver = resolver or ContinuationResolver(catalog)
        self.notices = notices
        self.key_bus = key_bus
        self.router = router or RemoteInputRouter()
        self.autoplay = autoplay
        self.start_paused = start_paused
        self.on_continue = on_continue

        self.parts: list[Part] = []
        self.state = PlaybackState()
        self.input_mode = InputMode.SEEK
        self.error: TvShowsError | None = None
        self.next_episode: str | None = None
        self.closed = False

        self._phase = Phase.LOADING
        self._transitions = 0  # Bumped whenever a part starts
        self._lock = asyncio.Lock()
        self._stack: AsyncExitStack | None = None
        self._key_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<PlaybackSession {self.channel} > {self.show} > {self.episode} [{self.phase.value}]>"

    @property
    def phase(self) -> Phase:
        if self._phase is Phase.PLAYING:
            return Phase.PAUSED if self.state.paused else Phase.PLAYING
        return self._phase

    @property
    def current_part(self) -> Part | None:
        if self._phase in (Phase.PLAYING, Phase.ENDED) and self.parts:
            return self.parts[self.state.part_index]
        return None

    # ----- lifetime -----

    async def __aenter__(self) -> PlaybackSession:
        self._stack = AsyncExitStack()
        if self.key_bus is not None:
            events = await self._stack.enter_async_context(self.key_bus.subscribe())
            self._key_task = asyncio.create_task(self._consume_keys(events))
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Tear down: stop key handling, abort fetches, stop the player."""
        if self.closed:
            return
        self.closed = True
        self.catalog.client.cancel()

        task = self._key_task
        self._key_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None

        await self.player.stop()
        logger.info(f"Closed session for {self.episode}")

    async def _consume_keys(self, events) -> None:
        async for event in events:
            command = self.router.translate(event, self.input_mode)
            if command is None:
                continue
            try:
                await self.dispatch(command)
            except Exception as e:
                logger.exception(f"Failed to handle key {event.key_code}: {e}")

    # ----- loading -----

    async def open(self) -> Phase:
        """Load the episode's parts and start playback (or show the part list)."""
        logger.info(f"Loading parts for {self.channel} > {self.show} > {self.episode}")
        try:
            parts = await self.catalog.parts(self.channel, self.show, self.episode)
        except FetchError as e:
            if e.cancelled or self.closed:
                logger.debug(f"Parts load for {self.episode} superseded")
                return self.phase
            self._fail(e)
            return self.phase
        except EmptyResultError as e:
            self._fail(e)
            return self.phase

        if self.closed:
            return self.phase

        async with self._lock:
            self.parts = parts
            logger.info(f"Loaded {len(parts)} parts for {self.episode}")
            if len(parts) == 1 or self.autoplay:
                await self._start_part(0, paused=self.start_paused)
            else:
                self._phase = Phase.SELECTING
        return self.phase

    def _fail(self, error: TvShowsError) -> None:
        logger.error(f"Session for {self.episode} failed: {error}")
        self.error = error
        self._phase = Phase.FAILED

    # ----- commands -----

    async def dispatch(self, command: Command) -> PlaybackState:
        """Apply one command; returns the resulting state."""
        ended = False
        async with self._lock:
            if self.closed:
                return self.state
            if isinstance(command, NEEDS_PARTS) and not self.parts:
                logger.debug(f"Ignoring {command} until parts are loaded")
                return self.state
            if self._phase is Phase.FAILED:
                logger.debug(f"Ignoring {command} on failed session")
                return self.state

            if isinstance(command, ProgressUpdate):
                self._on_progress(command)
            elif isinstance(command, SetInputMode):
                self.input_mode = command.mode
            elif isinstance(command, PlaybackFailed):
                await self._on_playback_failed(command)
            elif isinstance(command, JumpToPart):
                await self._on_jump(command.index)
            elif isinstance(command, (PreviousPart, NextPart)):
                await self._on_step_part(1 if isinstance(command, NextPart) else -1)
            elif self._phase is not Phase.PLAYING:
                logger.debug(f"Ignoring {command} while {self._phase.value}")
            elif isinstance(command, TogglePause):
                await self._on_toggle_pause()
            elif isinstance(command, (SpeedUp, SpeedDown)):
                await self._on_speed(up=isinstance(command, SpeedUp))
            elif isinstance(command, SeekBy):
                await self._seek(self.state.current_time + command.delta)
            elif isinstance(command, SeekTo):
                await self._seek(command.position)
            elif isinstance(command, PartEnded):
                ended = await self._on_part_ended()
            else:
                raise TypeError(f"Unsupported command: {command!r}")
            state = self.state

        if ended:
            await self._continue()
        return state

    async def _start_part(self, index: int, paused: bool = False) -> None:
        self._transitions += 1
        self.state = PlaybackState(part_index=index, mode=Paused() if paused else Playing())
        self._phase = Phase.PLAYING
        part = self.parts[index]
        logger.info(f"Playing part {index + 1}/{len(self.parts)}: {part.title}")
        await self.player.load(part.url, part.title)
        if paused:
            await self.player.pause()

    def _on_progress(self, command: ProgressUpdate) -> None:
        self.state = replace(
            self.state,
            current_time=max(0.0, command.current_time),
            total_duration=max(0.0, command.total_duration),
        )

    async def _on_toggle_pause(self) -> None:
        mode = self.state.mode
        if isinstance(mode, Playing) and mode.speed != 1.0:
            # Back to normal speed wins over pausing
            self.state = replace(self.state, mode=Playing(1.0))
            await self.player.set_speed(1.0)
        elif isinstance(mode, Playing):
            self.state = replace(self.state, mode=Paused())
            await self.player.pause()
        else:
            self.state = replace(self.state, mode=Playing(1.0))
            await self.player.resume()

    async def _on_speed(self, up: bool) -> None:
        mode = self.state.mode
        if isinstance(mode, Paused):
            self.state = replace(self.state, mode=Playing(1.0))
            await self.player.resume()
            return
        speed = step_speed(mode.speed, up)
        if speed != mode.speed:
            self.state = replace(self.state, mode=Playing(speed))
            await self.player.set_speed(speed)

    async def _seek(self, position: float) -> None:
        total = self.state.total_duration
        if total <= 0:
            logger.debug("Ignoring seek before the first progress update")
            return
        position = max(0.0, min(total, position))
        self.state = replace(self.state, current_time=position)
        await self.player.seek(position)

    async def _on_part_ended(self) -> bool:
        index = self.state.part_index
        if index < len(self.parts) - 1:
            await self._start_part(index + 1)
            return False
        self._phase = Phase.ENDED
        logger.info(f"Finished all {len(self.parts)} parts of {self.episode}")
        return True

    async def _on_jump(self, index: int) -> None:
        if not 0 <= index < len(self.parts):
            logger.info(f"Ignoring jump to part {index}, have {len(self.parts)}")
            return
        await self._start_part(index)

    async def _on_step_part(self, delta: int) -> None:
        if self._phase is Phase.SELECTING:
            await self._start_part(0)
            return
        target = self.state.part_index + delta
        if target < 0:
            self._notice("boundary", "Already at the first part")
            return
        if target >= len(self.parts):
            self._notice("boundary", "Already at the last part")
            return
        await self._start_part(target)

    async def _on_playback_failed(self, command: PlaybackFailed) -> None:
        self._fail(PlaybackError(command.message))
        await self.player.stop()

    async def _continue(self) -> None:
        transitions = self._transitions
        next_episode = await self.resolver.resolve(self.channel, self.show, self.episode)
        if self.closed:
            return
        if self._phase is not Phase.ENDED or self._transitions != transitions:
            logger.info(f"Dropping continuation to {next_episode}, session for {self.episode} moved on")
            return
        self.next_episode = next_episode
        if next_episode is not None and self.on_continue is not None:
            await self.on_continue(next_episode)

    def _notice(self, kind: str, message: str) -> None:
        if self.notices is not None:
            self.notices.publish(kind, message)
        else:
            logger.info(message)

    # ----- views -----

    def snapshot(self) -> dict:
        return {
            "channel": self.channel,
            "show": self.show,
            "episode": self.episode,
            "phase": self.phase.value,
            "parts": [p.to_dict() for p in self.parts],
            "current_part": self.current_part.to_dict() if self.current_part else None,
            "input_mode": self.input_mode.value,
            "state": self.state.to_dict(),
            "error": str(self.error) if self.error else None,
            "next_episode": self.next_episode,
        }
