"""Data models for recognized sheet music and playback state."""

from dataclasses import dataclass
from enum import Enum

# Normalized page coordinates run from 0 to this value on both axes.
COORDINATE_SCALE = 1000.0

# Durations at or below zero are clamped here so a frame always advances.
MIN_DURATION_BEATS = 1 / 64


def is_rest(token: str) -> bool:
    """True for the silence sentinel ("rest", any case)."""
    return "rest" in token.strip().lower()


@dataclass(frozen=True)
class Box:
    """
    A rectangle in normalized page coordinates (0–1000 on both axes).

    Attributes:
        top:    Upper edge (y minimum).
        left:   Left edge (x minimum).
        bottom: Lower edge (y maximum).
        right:  Right edge (x maximum).
    """

    top: float
    left: float
    bottom: float
    right: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


FULL_PAGE = Box(top=0.0, left=0.0, bottom=COORDINATE_SCALE, right=COORDINATE_SCALE)


@dataclass(frozen=True)
class Frame:
    """
    One musical instant: the pitches that start together and how long they last.

    Attributes:
        id:         Locally assigned key, unique within one session.
        page_index: Index of the page image this frame's boxes refer to.
        notes:      Pitch tokens such as "C4" or "rest"; duplicates allowed.
        duration:   Beats until the next frame begins (always > 0).
        region:     Wide context crop shown while the frame is active.
        highlights: One box per sounding note head inside the region.
    """

    id: str
    page_index: int
    notes: tuple[str, ...]
    duration: float
    region: Box
    highlights: tuple[Box, ...] = ()

    @property
    def is_rest(self) -> bool:
        """True when nothing in this frame produces sound."""
        return all(is_rest(note) for note in self.notes)

    @property
    def beats(self) -> float:
        """Duration used for timing, never below MIN_DURATION_BEATS."""
        if not self.duration >= MIN_DURATION_BEATS:
            return MIN_DURATION_BEATS
        return self.duration


@dataclass(frozen=True)
class AnalysisResult:
    """Tempo plus the ordered frames of one recognized score."""

    tempo: float
    frames: tuple[Frame, ...]

    @property
    def beat_seconds(self) -> float:
        """Length of one beat in seconds at the recognized tempo."""
        return 60.0 / self.tempo


class PlaybackStatus(Enum):
    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"
