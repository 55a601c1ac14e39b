"""Audio outputs: a voice mixer and the endpoints that play its blocks."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Voice:
    """
    One synthesized tone scheduled on an audio output.

    Attributes:
        pitch:       The token the voice was rendered from.
        frequency:   Oscillator frequency in Hz.
        start_time:  Output-clock time (seconds) at which the voice starts.
        duration:    Articulated note length in seconds.
        samples:     Mono float samples, including the stop margin.
        sample_rate: Rate the samples were rendered at.
    """

    pitch: str
    frequency: float
    start_time: float
    duration: float
    samples: np.ndarray
    sample_rate: int

    @property
    def stop_time(self) -> float:
        """Output-clock time after which the voice is silent and discarded."""
        return self.start_time + len(self.samples) / self.sample_rate


class VoiceMixer:
    """
    Sums overlapping voices into fixed-size output blocks.

    The mixer keeps its own sample clock: every call to ``mix`` advances it
    by the requested number of frames. A voice is placed on that clock at
    ``round(start_time * sample_rate)`` and dropped once the clock passes
    its last sample, so no voice outlives its stop time.
    """

    def __init__(self, sample_rate: int = 44100, master_gain: float = 0.3) -> None:
        self.sample_rate = sample_rate
        self.master_gain = master_gain
        self.position = 0
        self._voices: list[tuple[int, np.ndarray]] = []
        self._lock = threading.Lock()

    @property
    def active_voices(self) -> int:
        with self._lock:
            return len(self._voices)

    def current_time(self) -> float:
        return self.position / self.sample_rate

    def add(self, voice: Voice) -> None:
        start = int(round(voice.start_time * self.sample_rate))
        with self._lock:
            self._voices.append((start, voice.samples))

    def mix(self, frames: int) -> np.ndarray:
        """Render the next *frames* samples and advance the clock."""
        block = np.zeros(frames, dtype=np.float32)
        block_start = self.position
        block_end = block_start + frames

        with self._lock:
            remaining: list[tuple[int, np.ndarray]] = []
            for start, samples in self._voices:
                end = start + len(samples)
                lo = max(start, block_start)
                hi = min(end, block_end)
                if hi > lo:
                    block[lo - block_start:hi - block_start] += samples[lo - start:hi - start]
                if end > block_end:
                    remaining.append((start, samples))
            self._voices = remaining
            self.position = block_end

        return np.clip(block * self.master_gain, -1.0, 1.0)

    def clear(self) -> None:
        with self._lock:
            self._voices.clear()


class AudioOutput(ABC):
    """Abstract audio endpoint that voices are started on."""

    @abstractmethod
    def current_time(self) -> float:
        """Current time of the output clock in seconds."""

    @abstractmethod
    def start_voice(self, voice: Voice) -> None:
        """Schedule *voice* to sound from its start time."""

    def resume(self) -> None:
        """Make sure the endpoint is running; called before each chord."""

    def close(self) -> None:
        """Release the endpoint. It may be resumed again later."""


class NullOutput(AudioOutput):
    """
    Silent output on a virtual clock.

    Records every started voice in ``voices``; used for ``--mute`` playback
    and in tests. The clock only moves when ``advance`` is called.
    """

    def __init__(self) -> None:
        self.voices: list[Voice] = []
        self._time = 0.0
        self.closed = False

    def current_time(self) -> float:
        return self._time

    def advance(self, seconds: float) -> None:
        self._time += seconds

    def start_voice(self, voice: Voice) -> None:
        self.voices.append(voice)

    def resume(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class SoundDeviceOutput(AudioOutput):
    """
    Plays mixed voices through a ``sounddevice`` output stream.

    The stream is opened lazily on the first chord and closed by ``close``;
    the next chord opens it again. Voices live in a VoiceMixer, whose
    clock is the output clock reported by ``current_time``.
    """

    BLOCK_SIZE = 512

    def __init__(self, sample_rate: int = 44100, master_gain: float = 0.3, device: int | str | None = None) -> None:
        self.sample_rate = sample_rate
        self.device = device
        self.mixer = VoiceMixer(sample_rate=sample_rate, master_gain=master_gain)
        self._stream = None

    def _callback(self, outdata, frames, time, status) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        outdata[:, 0] = self.mixer.mix(frames)

    def resume(self) -> None:
        if self._stream is not None:
            return
        import sounddevice as sd

        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            blocksize=self.BLOCK_SIZE,
            channels=1,
            dtype="float32",
            device=self.device,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Audio output opened at %d Hz.", self.sample_rate)

    def current_time(self) -> float:
        # Small lead so a chord never starts inside a block already rendered
        return self.mixer.current_time() + self.BLOCK_SIZE / self.sample_rate

    def start_voice(self, voice: Voice) -> None:
        self.resume()
        self.mixer.add(voice)

    def close(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        self.mixer.clear()
        logger.info("Audio output closed.")
