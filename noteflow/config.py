"""Runtime configuration and logging setup."""

import logging
from dataclasses import dataclass

import click

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class PlaybackConfig:
    """
    Tunable playback settings shared by the engine components.

    Attributes:
        sample_rate:       Audio sample rate in Hz.
        master_gain:       Output attenuation applied after voices are summed.
        articulation:      Fraction of a frame's wall time a note sounds for.
        display_height:    Canvas height in pixels; width follows the crop.
        highlight_padding: Pixels added around each highlighted note head.
        min_speed:         Lowest playback speed multiplier.
        max_speed:         Highest playback speed multiplier.
        speed_step:        Increment used by the speed-up/down transport actions.
    """

    sample_rate: int = 44100
    master_gain: float = 0.3
    articulation: float = 0.95
    display_height: int = 400
    highlight_padding: float = 2.0
    min_speed: float = 0.25
    max_speed: float = 2.0
    speed_step: float = 0.25

    def clamp_speed(self, multiplier: float) -> float:
        return max(self.min_speed, min(self.max_speed, multiplier))


class ClickEchoHandler(logging.Handler):
    """Log handler that writes through ``click.echo`` to stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a single console handler to the ``noteflow`` logger.

    Safe to call repeatedly; later calls only adjust the level.
    """
    logger = logging.getLogger("noteflow")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in logger.handlers:
        if isinstance(handler, ClickEchoHandler):
            return logger

    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
