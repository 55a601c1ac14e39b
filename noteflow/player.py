"""Player: transport surface composing the scheduler, synthesizer and renderer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from PIL import Image

from noteflow.audio_output import AudioOutput, SoundDeviceOutput
from noteflow.config import PlaybackConfig
from noteflow.models import AnalysisResult, Frame
from noteflow.scheduler import PlaybackScheduler
from noteflow.synthesizer import ToneSynthesizer
from noteflow.view_renderer import ViewRenderer

logger = logging.getLogger(__name__)

OutputFactory = Callable[[PlaybackConfig], AudioOutput]


def default_output(config: PlaybackConfig) -> AudioOutput:
    return SoundDeviceOutput(sample_rate=config.sample_rate, master_gain=config.master_gain)


@dataclass
class PlaybackSession:
    """Everything that lives from one ``load`` to the next."""

    analysis: AnalysisResult
    pages: Sequence[Image.Image | None]
    output: AudioOutput
    sample_rate: int = 44100
    synthesizer: ToneSynthesizer = field(init=False)

    def __post_init__(self) -> None:
        self.synthesizer = ToneSynthesizer(self.output, sample_rate=self.sample_rate)

    def close(self) -> None:
        self.output.close()


@dataclass(frozen=True)
class PlayerSnapshot:
    """What a transport display shows about the current frame."""

    frame_index: int
    frame_count: int
    notes: tuple[str, ...]
    page_number: int
    is_rest: bool
    is_playing: bool
    speed: float
    tempo: float

    @property
    def progress(self) -> float:
        if self.frame_count == 0:
            return 0.0
        return (self.frame_index + 1) / self.frame_count


class Player:
    """
    Wires transport actions to a PlaybackScheduler.

    Each ``load`` opens a new PlaybackSession (analysis, page images,
    audio output) and closes the previous one. Frame changes are drawn by
    the ViewRenderer; the latest canvas is on ``canvas``.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        config: PlaybackConfig | None = None,
        output_factory: OutputFactory = default_output,
        on_frame: Callable[[int, Frame, Image.Image | None], Any] | None = None,
        on_stop: Callable[[], Any] | None = None,
    ) -> None:
        self.config = config or PlaybackConfig()
        self.output_factory = output_factory
        self.on_frame = on_frame
        self.on_stop = on_stop
        self.session: PlaybackSession | None = None
        self.renderer = ViewRenderer(
            display_height=self.config.display_height,
            padding=self.config.highlight_padding,
        )
        self.scheduler = PlaybackScheduler(
            loop,
            on_chord=self._sound_chord,
            on_frame=self._show_frame,
            on_stop=self._stopped,
            config=self.config,
        )

    # ------------------------------------------------------------------
    # Scheduler hooks
    # ------------------------------------------------------------------

    def _sound_chord(self, notes: Sequence[str], seconds: float) -> None:
        if self.session is not None:
            self.session.synthesizer.render_chord(notes, seconds)

    def _show_frame(self, index: int, frame: Frame) -> None:
        if self.session is None:
            return
        canvas = self.renderer.render(frame, self.session.pages)
        if self.on_frame is not None:
            self.on_frame(index, frame, canvas)

    def _stopped(self) -> None:
        if self.on_stop is not None:
            self.on_stop()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def canvas(self) -> Image.Image | None:
        return self.renderer.canvas

    def load(self, analysis: AnalysisResult, pages: Sequence[Image.Image | None]) -> None:
        """
        Replace the current session with *analysis* and its page images.

        Raises:
            IngestionError: If the analysis cannot be played; no session is
                            left open in that case.
        """
        self.close()
        self.session = PlaybackSession(
            analysis=analysis,
            pages=list(pages),
            output=self.output_factory(self.config),
            sample_rate=self.config.sample_rate,
        )
        try:
            self.scheduler.load(analysis)
        except ValueError:
            self.close()
            raise

    def play(self) -> bool:
        return self.scheduler.play()

    def pause(self) -> None:
        self.scheduler.pause()

    def toggle(self) -> bool:
        """Pause when playing, play otherwise. Returns the new playing flag."""
        if self.scheduler.is_playing:
            self.pause()
        else:
            self.play()
        return self.scheduler.is_playing

    def reset(self) -> None:
        self.scheduler.reset()
        if self.session is not None:
            # Reopened lazily by the next chord
            self.session.output.close()

    def set_speed(self, multiplier: float) -> float:
        return self.scheduler.set_speed(multiplier)

    def speed_up(self) -> float:
        return self.scheduler.speed_up()

    def speed_down(self) -> float:
        return self.scheduler.speed_down()

    def close(self) -> None:
        """End the current session, if any, and release its audio output."""
        self.scheduler.unload()
        if self.session is not None:
            self.session.close()
            self.session = None

    def snapshot(self) -> PlayerSnapshot | None:
        frame = self.scheduler.current_frame
        if frame is None or self.scheduler.analysis is None:
            return None
        return PlayerSnapshot(
            frame_index=self.scheduler.current_index,
            frame_count=len(self.scheduler.analysis.frames),
            notes=frame.notes,
            page_number=frame.page_index + 1,
            is_rest=frame.is_rest,
            is_playing=self.scheduler.is_playing,
            speed=self.scheduler.speed,
            tempo=self.scheduler.analysis.tempo,
        )
