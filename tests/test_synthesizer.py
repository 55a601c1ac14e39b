"""Unit tests for pitch parsing, the articulation envelope and ToneSynthesizer."""

import numpy as np
import pytest

from conftest import make_frame
from noteflow.audio_output import NullOutput
from noteflow.synthesizer import (
    FLOOR_LEVEL,
    PEAK_LEVEL,
    STOP_MARGIN_SECONDS,
    SUSTAIN_LEVEL,
    ToneSynthesizer,
    articulation_envelope,
    is_rest,
    pitch_to_frequency,
    pitch_to_midi,
)

SR = 8000


# ---------------------------------------------------------------------------
# Pitch parsing
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("A4", 440.0),
        ("A5", 880.0),
        ("A3", 220.0),
        ("C4", 261.63),
        ("E4", 329.63),
        ("G4", 392.00),
        ("C#4", 277.18),
        ("c4", 261.63),
        (" G4 ", 392.00),
    ],
)
def test_pitch_to_frequency(token: str, expected: float) -> None:
    assert pitch_to_frequency(token) == pytest.approx(expected, abs=0.01)


def test_a4_is_exactly_440() -> None:
    assert pitch_to_frequency("A4") == 440.0


@pytest.mark.parametrize("token", ["H4", "C", "4", "", "Bb4", "C##4", "do4", "rest", "A9999", "C10"])
def test_unparseable_pitch_falls_back_to_440(token: str) -> None:
    assert pitch_to_frequency(token) == 440.0


def test_pitch_to_midi() -> None:
    assert pitch_to_midi("C4") == 60
    assert pitch_to_midi("A4") == 69
    assert pitch_to_midi("C-1") is None
    assert pitch_to_midi("B#3") is None
    assert pitch_to_midi("G9") == 127
    assert pitch_to_midi("G#9") is None
    assert pitch_to_midi("A9999") is None


@pytest.mark.parametrize("token", ["rest", "REST", "Rest", " rest "])
def test_is_rest_is_case_insensitive(token: str) -> None:
    assert is_rest(token)


def test_pitch_is_not_rest() -> None:
    assert not is_rest("C4")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def test_envelope_shape() -> None:
    duration = 1.0
    env = articulation_envelope(duration, SR)

    assert len(env) == int(round((duration + STOP_MARGIN_SECONDS) * SR))
    assert env[0] == 0.0
    assert env.max() <= PEAK_LEVEL
    assert env.max() == pytest.approx(PEAK_LEVEL, rel=0.01)
    assert env[int(0.5 * SR)] == SUSTAIN_LEVEL


def test_envelope_decays_towards_but_not_to_zero() -> None:
    duration = 1.0
    env = articulation_envelope(duration, SR)
    decay = env[int(0.8 * SR):int(duration * SR)]

    assert np.all(np.diff(decay) <= 0)
    assert decay[-1] == pytest.approx(FLOOR_LEVEL, rel=0.05)
    assert env[-1] > 0.0


def test_very_short_note_still_sustains() -> None:
    env = articulation_envelope(0.01, SR)
    assert env[int(0.03 * SR)] == SUSTAIN_LEVEL


# ---------------------------------------------------------------------------
# ToneSynthesizer
# ---------------------------------------------------------------------------

def test_chord_voices_share_one_start_time() -> None:
    output = NullOutput()
    output.advance(2.5)
    synth = ToneSynthesizer(output, sample_rate=SR)

    voices = synth.render_chord(["C4", "E4", "G4"], 0.5)

    assert len(voices) == 3
    assert {v.start_time for v in voices} == {2.5}
    assert output.voices == voices


def test_chord_frequencies_for_scenario_frame() -> None:
    synth = ToneSynthesizer(NullOutput(), sample_rate=SR)
    voices = synth.render_chord(["E4", "G4"], 0.95)
    assert [v.frequency for v in voices] == [pytest.approx(329.63, abs=0.01), pytest.approx(392.0, abs=0.01)]


def test_rest_produces_no_voice() -> None:
    output = NullOutput()
    synth = ToneSynthesizer(output, sample_rate=SR)
    assert synth.render_chord(["rest"], 0.25) == []
    assert synth.render_note("REST", 0.25, 0.0) is None
    assert output.voices == []


def test_empty_frame_is_silence() -> None:
    output = NullOutput()
    assert ToneSynthesizer(output, sample_rate=SR).render_chord([], 0.5) == []
    assert output.voices == []


def test_duplicate_pitches_each_get_a_voice() -> None:
    synth = ToneSynthesizer(NullOutput(), sample_rate=SR)
    assert len(synth.render_chord(["C4", "C4"], 0.5)) == 2


def test_voice_stops_shortly_after_its_duration() -> None:
    synth = ToneSynthesizer(NullOutput(), sample_rate=SR)
    voice = synth.render_note("A4", 0.5, start_time=1.0)

    assert voice is not None
    assert voice.stop_time == pytest.approx(1.0 + 0.5 + STOP_MARGIN_SECONDS, abs=1 / SR)
    assert np.abs(voice.samples).max() <= PEAK_LEVEL + 1e-6


def test_malformed_pitch_still_sounds() -> None:
    synth = ToneSynthesizer(NullOutput(), sample_rate=SR)
    (voice,) = synth.render_chord(["X9"], 0.2)
    assert voice.frequency == 440.0


def test_out_of_range_octave_keeps_the_rest_of_the_chord() -> None:
    output = NullOutput()
    synth = ToneSynthesizer(output, sample_rate=SR)

    voices = synth.render_chord(["C4", "A9999", "E4"], 0.1)

    assert [v.pitch for v in voices] == ["C4", "A9999", "E4"]
    assert voices[1].frequency == 440.0
    assert output.voices == voices


@pytest.mark.parametrize("token", ["rest", " Rest ", "quarter-rest", "C4", "A9999", ""])
def test_frame_rest_flag_agrees_with_token_check(token: str) -> None:
    assert make_frame(0, [token], 1.0).is_rest == is_rest(token)
