"""Commands accepted by PlaybackSession.dispatch()."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class InputMode(str, Enum):
    """What left/right keys do on the remote."""

    SEEK = "seek"
    SPEED = "speed"


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class SpeedUp:
    pass


@dataclass(frozen=True)
class SpeedDown:
    pass


@dataclass(frozen=True)
class SeekBy:
    delta: float


@dataclass(frozen=True)
class SeekTo:
    position: float


@dataclass(frozen=True)
class ProgressUpdate:
    current_time: float
    total_duration: float


@dataclass(frozen=True)
class PartEnded:
    pass


@dataclass(frozen=True)
class JumpToPart:
    index: int


@dataclass(frozen=True)
class PreviousPart:
    pass


@dataclass(frozen=True)
class NextPart:
    pass


@dataclass(frozen=True)
class SetInputMode:
    mode: InputMode


@dataclass(frozen=True)
class PlaybackFailed:
    message: str


Command = (
    TogglePause
    | SpeedUp
    | SpeedDown
    | SeekBy
    | SeekTo
    | ProgressUpdate
    | PartEnded
    | JumpToPart
    | PreviousPart
    | NextPart
    | SetInputMode
    | PlaybackFailed
)

# Commands that only make sense once the part list is loaded
NEEDS_PARTS = (
    TogglePause,
    SpeedUp,
    SpeedDown,
    SeekBy,
    SeekTo,
    PartEnded,
    JumpToPart,
    PreviousPart,
    NextPart,
)


def command_from_dict(data: dict) -> Command:
    """Build a command from ``{"name": ..., "value": ...}`` as posted by a UI."""
    name = str(data.get("name", "")).lower()
    value = data.get("value")
    if name == "toggle_pause":
        return TogglePause()
    if name == "speed_up":
        return SpeedUp()
    if name == "speed_down":
        return SpeedDown()
    if name == "seek_by":
        return SeekBy(float(value))
    if name == "seek_to":
        return SeekTo(float(value))
    if name == "jump_to_part":
        return JumpToPart(int(value))
    if name == "previous_part":
        return PreviousPart()
    if name == "next_part":
        return NextPart()
    if name == "part_ended":
        return PartEnded()
    if name == "input_mode":
        return SetInputMode(InputMode(value))
    raise ValueError(f"Unknown command: {name!r}")
