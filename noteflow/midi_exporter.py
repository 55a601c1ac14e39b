"""MidiExporter: writes an analysis as a Standard MIDI File."""

import logging

from midiutil import MIDIFile

from noteflow.models import AnalysisResult, is_rest
from noteflow.synthesizer import A4_MIDI, pitch_to_midi

logger = logging.getLogger(__name__)

# In midiutil Format 1 MIDI, track 0 is the conductor/tempo track.
TRACK_CONDUCTOR = 0  # Tempo only; never receives notes
TRACK_PIANO = 1
CHANNEL_PIANO = 0


class MidiExporter:
    """
    Writes the frames of an AnalysisResult to a two-track MIDI file.

    Track layout (Format 1)
    -----------------------
    Track 0 — conductor track carrying the recognized tempo.

    Track 1 — "Piano", every frame laid back to back: a frame starts where
    the previous one ended, and each pitch lasts for the frame's duration
    in beats.

    Rest tokens are skipped. Tokens that do not parse are written as A4,
    the same pitch the synthesizer falls back to.
    """

    DEFAULT_VELOCITY = 80  # MIDI velocity (0-127)

    def __init__(self, velocity: int = DEFAULT_VELOCITY) -> None:
        """
        Args:
            velocity: MIDI note-on velocity for every note.
        """
        self.velocity = velocity

    def export(self, analysis: AnalysisResult, output_path: str) -> int:
        """
        Render *analysis* to *output_path*.

        Returns:
            Number of notes written.

        Raises:
            OSError: If the output file cannot be opened for writing.
        """
        midi = MIDIFile(numTracks=2, removeDuplicates=False, deinterleave=False)
        midi.addTempo(TRACK_CONDUCTOR, 0, analysis.tempo)
        midi.addTrackName(TRACK_PIANO, 0, "Piano")

        written = 0
        start_beat = 0.0
        for frame in analysis.frames:
            for token in frame.notes:
                if is_rest(token):
                    continue
                pitch = pitch_to_midi(token)
                if pitch is None:
                    logger.warning("Frame %s: unrecognized pitch %r written as A4.", frame.id, token)
                    pitch = A4_MIDI
                midi.addNote(
                    track=TRACK_PIANO,
                    channel=CHANNEL_PIANO,
                    pitch=pitch,
                    time=start_beat,
                    duration=frame.beats,
                    volume=self.velocity,
                )
                written += 1
            start_beat += frame.beats

        with open(output_path, "wb") as f:
            midi.writeFile(f)
        return written
