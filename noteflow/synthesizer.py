"""ToneSynthesizer: turns pitch tokens into enveloped voices on an audio output."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

import librosa
import numpy as np

from noteflow.audio_output import AudioOutput, Voice
from noteflow.models import is_rest

logger = logging.getLogger(__name__)

# Chromatic pitch class names (index 0 = C)
NOTE_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

SEMITONES_PER_OCTAVE = 12
MIDI_MIN = 0
MIDI_MAX = 127
A4_MIDI = 69
A4_FREQUENCY = 440.0

_PITCH_RE = re.compile(r"^([A-Ga-g]#?)(\d+)$")


def pitch_to_midi(token: str) -> int | None:
    """
    Convert a pitch token such as ``"C#4"`` to a MIDI note number.

    MIDI octave numbering: C-1 = 0, C4 (Middle C) = 60, A4 = 69.

    Returns:
        The MIDI number, or None if the token does not parse or lies
        outside the MIDI range.
    """
    match = _PITCH_RE.match(token.strip())
    if not match or match.group(1).upper() not in NOTE_NAMES:
        return None
    semitone = NOTE_NAMES.index(match.group(1).upper())
    octave = int(match.group(2))
    midi = (octave + 1) * SEMITONES_PER_OCTAVE + semitone
    if not MIDI_MIN <= midi <= MIDI_MAX:
        return None
    return midi


def midi_to_frequency(midi: int) -> float:
    return A4_FREQUENCY * 2.0 ** ((midi - A4_MIDI) / SEMITONES_PER_OCTAVE)


def pitch_to_frequency(token: str) -> float:
    """Frequency in Hz for *token*; unparseable tokens fall back to 440 Hz."""
    midi = pitch_to_midi(token)
    if midi is None:
        logger.warning("Unrecognized pitch %r; playing %.0f Hz instead.", token, A4_FREQUENCY)
        return A4_FREQUENCY
    return midi_to_frequency(midi)


# ── Envelope ───────────────────────────────────────────────────────────────

ATTACK_SECONDS = 0.02
PEAK_LEVEL = 0.5
SUSTAIN_LEVEL = 0.4
SUSTAIN_FRACTION = 0.8
MIN_SUSTAIN_SECONDS = 0.05
MIN_RELEASE_SECONDS = 0.01
FLOOR_LEVEL = 0.001
STOP_MARGIN_SECONDS = 0.1


def release_end(duration: float) -> float:
    """Time at which the decay reaches the floor level."""
    sustain_end = max(MIN_SUSTAIN_SECONDS, duration * SUSTAIN_FRACTION)
    return max(duration, sustain_end + MIN_RELEASE_SECONDS)


def articulation_envelope(duration: float, sample_rate: int) -> np.ndarray:
    """
    Build the amplitude envelope for a note lasting *duration* seconds.

    Shape: linear attack to the peak over 20 ms, a held sustain level until
    80% of the note (never earlier than 50 ms), then an exponential decay
    that reaches 0.001 at the end of the note. The envelope continues at
    the floor level for a short stop margin.
    """
    sustain_end = max(MIN_SUSTAIN_SECONDS, duration * SUSTAIN_FRACTION)
    decay_end = release_end(duration)
    n_samples = max(1, int(round((decay_end + STOP_MARGIN_SECONDS) * sample_rate)))
    t = np.arange(n_samples) / sample_rate

    envelope = np.full(n_samples, FLOOR_LEVEL)

    attack = t < ATTACK_SECONDS
    envelope[attack] = PEAK_LEVEL * t[attack] / ATTACK_SECONDS

    envelope[(t >= ATTACK_SECONDS) & (t < sustain_end)] = SUSTAIN_LEVEL

    decay = (t >= sustain_end) & (t < decay_end)
    progress = (t[decay] - sustain_end) / (decay_end - sustain_end)
    envelope[decay] = SUSTAIN_LEVEL * (FLOOR_LEVEL / SUSTAIN_LEVEL) ** progress

    return envelope


class ToneSynthesizer:
    """
    Renders pitch tokens as short enveloped tones on an AudioOutput.

    Chords share a single start time read once from the output clock, so
    every pitch of a frame begins on the same sample.
    """

    def __init__(self, output: AudioOutput, sample_rate: int = 44100) -> None:
        self.output = output
        self.sample_rate = sample_rate

    def _tone(self, frequency: float, duration: float) -> np.ndarray:
        envelope = articulation_envelope(duration, self.sample_rate)
        wave = librosa.tone(frequency, sr=self.sample_rate, length=len(envelope))
        return (wave * envelope).astype(np.float32)

    def render_note(self, pitch: str, duration_seconds: float, start_time: float) -> Voice | None:
        """
        Start one voice for *pitch* at *start_time* on the output clock.

        Returns:
            The started Voice, or None for the rest sentinel.
        """
        if is_rest(pitch):
            return None

        frequency = pitch_to_frequency(pitch)
        voice = Voice(
            pitch=pitch,
            frequency=frequency,
            start_time=start_time,
            duration=duration_seconds,
            samples=self._tone(frequency, duration_seconds),
            sample_rate=self.sample_rate,
        )
        self.output.start_voice(voice)
        return voice

    def render_chord(self, pitches: Iterable[str], duration_seconds: float) -> list[Voice]:
        """Start every pitch in *pitches* at the same output time."""
        pitches = list(pitches)
        self.output.resume()
        start_time = self.output.current_time()
        voices: list[Voice] = []
        for pitch in pitches:
            voice = self.render_note(pitch, duration_seconds, start_time)
            if voice is not None:
                voices.append(voice)
        logger.debug(
            "Chord %s: %d voice(s) for %.3fs at t=%.3f",
            pitches,
            len(voices),
            duration_seconds,
            start_time,
        )
        return voices
