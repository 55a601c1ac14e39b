"""PlaybackScheduler: walks the frame sequence on a self-rescheduling timer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from noteflow.config import PlaybackConfig
from noteflow.ingest import IngestionError
from noteflow.models import AnalysisResult, Frame, PlaybackStatus

logger = logging.getLogger(__name__)

ChordHook = Callable[[Sequence[str], float], Any]
FrameHook = Callable[[int, Frame], Any]
StopHook = Callable[[], Any]


class PlaybackScheduler:
    """
    Advances through an AnalysisResult one frame at a time.

    Each tick sounds the current frame, notifies the frame listener, and
    arms a single ``loop.call_later`` timer for the frame's wall-clock
    length. When the timer fires the scheduler moves to the next frame, or
    stops at the start of the sequence after the last one.

    State machine
    -------------
    IDLE    — no analysis loaded.
    READY   — loaded, not advancing (fresh load, paused, reset, finished).
    RUNNING — advancing on the timer.

    Cancellation
    ------------
    At most one timer is pending at a time. Every timer carries the
    generation number that was current when it was armed; ``pause``,
    ``reset`` and ``load`` cancel the handle and bump the generation, so a
    callback that was already queued finds a stale generation and does
    nothing.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_chord: ChordHook | None = None,
        on_frame: FrameHook | None = None,
        on_stop: StopHook | None = None,
        config: PlaybackConfig | None = None,
    ) -> None:
        """
        Args:
            loop:     Event loop whose ``call_later`` drives the timer.
            on_chord: Called with (notes, seconds) to sound a frame.
            on_frame: Called with (index, frame) whenever a frame becomes active.
            on_stop:  Called when the sequence runs out and playback stops.
            config:   Speed bounds and articulation ratio.
        """
        self.loop = loop
        self.on_chord = on_chord
        self.on_frame = on_frame
        self.on_stop = on_stop
        self.config = config or PlaybackConfig()

        self.analysis: AnalysisResult | None = None
        self.current_index = 0
        self.speed = 1.0
        self.status = PlaybackStatus.IDLE

        self._pending: asyncio.TimerHandle | None = None
        self._generation = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.RUNNING

    @property
    def has_pending_advance(self) -> bool:
        return self._pending is not None

    @property
    def current_frame(self) -> Frame | None:
        if self.analysis is None:
            return None
        return self.analysis.frames[self.current_index]

    def frame_seconds(self, frame: Frame) -> float:
        """Wall-clock length of *frame* at the current tempo and speed."""
        if self.analysis is None:
            raise RuntimeError("No analysis loaded.")
        return self.analysis.beat_seconds * frame.beats / self.speed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _call_hook(self, hook: Callable[..., Any] | None, *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Playback hook %r failed; continuing.", hook)

    def _tick(self) -> None:
        """Sound and show the current frame, then arm the advance timer."""
        assert self.analysis is not None
        frame = self.analysis.frames[self.current_index]
        seconds = self.frame_seconds(frame)

        logger.debug(
            "Frame %d/%d %s for %.3fs",
            self.current_index + 1,
            len(self.analysis.frames),
            list(frame.notes),
            seconds,
        )
        generation = self._generation
        self._call_hook(self.on_chord, frame.notes, seconds * self.config.articulation)
        if self._interrupted(generation):
            return
        self._call_hook(self.on_frame, self.current_index, frame)
        if self._interrupted(generation):
            return

        self._cancel_pending()
        self._pending = self.loop.call_later(seconds, self._advance, self._generation)

    def _interrupted(self, generation: int) -> bool:
        """True once a hook has paused, reset or reloaded during a tick."""
        return generation != self._generation or self.status is not PlaybackStatus.RUNNING

    def _advance(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale advance (generation %d).", generation)
            return
        self._pending = None
        if self.status is not PlaybackStatus.RUNNING:
            return
        assert self.analysis is not None

        if self.current_index + 1 >= len(self.analysis.frames):
            self._finish()
            return

        self.current_index += 1
        self._tick()

    def _finish(self) -> None:
        assert self.analysis is not None
        self._cancel_pending()
        self.status = PlaybackStatus.READY
        self.current_index = 0
        logger.info("Playback finished.")
        self._call_hook(self.on_frame, 0, self.analysis.frames[0])
        self._call_hook(self.on_stop)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, analysis: AnalysisResult) -> None:
        """
        Start a new session with *analysis*, positioned at the first frame.

        Raises:
            IngestionError: If the analysis has no frames or a non-positive
                            tempo. The scheduler is left IDLE.
        """
        self._cancel_pending()
        if not analysis.frames or not analysis.tempo > 0:
            self.analysis = None
            self.current_index = 0
            self.status = PlaybackStatus.IDLE
            raise IngestionError("Analysis has no usable data: need frames and a positive tempo.")

        self.analysis = analysis
        self.current_index = 0
        self.status = PlaybackStatus.READY
        logger.info("Loaded %d frame(s) at %.1f BPM.", len(analysis.frames), analysis.tempo)
        self._call_hook(self.on_frame, 0, analysis.frames[0])

    def unload(self) -> None:
        """Drop the current session and return to IDLE."""
        self._cancel_pending()
        self.analysis = None
        self.current_index = 0
        self.status = PlaybackStatus.IDLE

    def play(self) -> bool:
        """
        Start or resume advancing from the current frame.

        Returns:
            False when nothing is loaded, True otherwise.
        """
        if self.analysis is None:
            logger.warning("play() ignored: no analysis loaded.")
            return False
        if self.status is PlaybackStatus.RUNNING:
            return True

        self.status = PlaybackStatus.RUNNING
        self._tick()
        return True

    def pause(self) -> None:
        """Stop advancing, keeping the current frame for resume."""
        self._cancel_pending()
        if self.status is PlaybackStatus.RUNNING:
            self.status = PlaybackStatus.READY

    def reset(self) -> None:
        """Stop and rewind to the first frame. Safe to call in any state."""
        self._cancel_pending()
        self.current_index = 0
        if self.analysis is None:
            self.status = PlaybackStatus.IDLE
            return
        self.status = PlaybackStatus.READY
        self._call_hook(self.on_frame, 0, self.analysis.frames[0])

    def set_speed(self, multiplier: float) -> float:
        """
        Change the speed used for frames scheduled from now on.

        An already armed timer keeps its original length.

        Returns:
            The clamped speed actually applied.
        """
        self.speed = self.config.clamp_speed(multiplier)
        return self.speed

    def speed_up(self) -> float:
        return self.set_speed(self.speed + self.config.speed_step)

    def speed_down(self) -> float:
        return self.set_speed(self.speed - self.config.speed_step)
