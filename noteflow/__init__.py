"""NoteFlow — sheet music playback with synchronized highlighting."""

__version__ = "0.1.0"
