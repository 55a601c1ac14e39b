"""NoteFlow CLI entry point."""

import asyncio
import sys
from pathlib import Path

import click
from PIL import Image

from noteflow import __version__
from noteflow.audio_output import AudioOutput, NullOutput
from noteflow.config import PlaybackConfig, configure_logging
from noteflow.ingest import IngestionError, load_analysis_file
from noteflow.models import AnalysisResult, Frame
from noteflow.pages import load_pages
from noteflow.player import Player, default_output
from noteflow.view_renderer import ViewRenderer

_DEFAULTS = PlaybackConfig()
SPEED_RANGE = click.FloatRange(_DEFAULTS.min_speed, _DEFAULTS.max_speed)


def _load_or_exit(analysis_file: str) -> AnalysisResult:
    """Read the analysis JSON, exiting with an error message if it is unusable."""
    try:
        return load_analysis_file(analysis_file)
    except IngestionError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)
    except OSError as exc:
        click.echo(f"  ERROR: Could not read analysis — {exc}", err=True)
        sys.exit(1)


def _format_notes(frame: Frame) -> str:
    return " ".join(frame.notes) if frame.notes else "(silence)"


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="noteflow")
@click.option("--verbose", "-v", is_flag=True, help="Log scheduling and synthesis details.")
def main(verbose: bool) -> None:
    """NoteFlow — play recognized sheet music with synchronized highlighting."""
    configure_logging(verbose)


# ── inspect subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("analysis_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--speed", type=SPEED_RANGE, default=1.0, show_default=True, help="Playback speed multiplier.")
def inspect(analysis_file: str, speed: float) -> None:
    """
    List the frames of an analysis with their wall-clock durations.

    ANALYSIS_FILE is the JSON produced by the recognition service.
    """
    analysis = _load_or_exit(analysis_file)
    beat = analysis.beat_seconds

    click.echo(f"noteflow v{__version__}")
    click.echo(f"  Tempo  : {analysis.tempo:g} BPM  |  Speed: {speed:.2f}x")
    click.echo(f"  Frames : {len(analysis.frames)}")
    click.echo()

    elapsed = 0.0
    for index, frame in enumerate(analysis.frames):
        seconds = beat * frame.beats / speed
        click.echo(
            f"  {index + 1:4d}  p{frame.page_index + 1}  {elapsed:7.2f}s  "
            f"{seconds:6.3f}s  {frame.beats:5.2f} beats  {_format_notes(frame)}"
        )
        elapsed += seconds

    click.echo()
    click.echo(f"Total: {elapsed:.2f}s")


# ── play subcommand ────────────────────────────────────────────────────────────

async def _perform(
    analysis: AnalysisResult,
    pages: list,
    config: PlaybackConfig,
    speed: float,
    mute: bool,
    save_frames: Path | None,
) -> None:
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()

    def show(index: int, frame: Frame, canvas: Image.Image | None) -> None:
        if not player.scheduler.is_playing:
            return
        page = f"  page {frame.page_index + 1}" if len(pages) > 1 else ""
        click.echo(f"  [{index + 1}/{len(analysis.frames)}] {_format_notes(frame)}{page}")
        if save_frames is not None and canvas is not None:
            canvas.save(save_frames / f"frame_{index + 1:04d}.png")

    def output_factory(cfg: PlaybackConfig) -> AudioOutput:
        return NullOutput() if mute else default_output(cfg)

    player = Player(loop, config=config, output_factory=output_factory, on_frame=show, on_stop=finished.set)
    player.load(analysis, pages)
    player.set_speed(speed)
    player.play()
    try:
        await finished.wait()
    finally:
        player.close()


@main.command()
@click.argument("analysis_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("pages", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--speed", type=SPEED_RANGE, default=1.0, show_default=True, help="Playback speed multiplier.")
@click.option("--mute", is_flag=True, help="Run the timeline without opening an audio device.")
@click.option(
    "--save-frames",
    type=click.Path(file_okay=False, writable=True),
    default=None,
    metavar="DIR",
    help="Write the highlighted view of every frame as PNG into DIR.",
)
@click.option("--master-gain", type=click.FloatRange(0.0, 1.0), default=0.3, show_default=True)
@click.option("--display-height", type=click.IntRange(50, 4000), default=400, show_default=True)
def play(
    analysis_file: str,
    pages: tuple[str, ...],
    speed: float,
    mute: bool,
    save_frames: str | None,
    master_gain: float,
    display_height: int,
) -> None:
    """
    Play an analysis, showing each frame as it sounds.

    ANALYSIS_FILE is the recognition JSON; PAGES are the page images in
    order (page 1 first). Press Ctrl-C to stop.

    \b
    Examples:
      noteflow play analysis.json page1.jpg page2.jpg
      noteflow play analysis.json page1.jpg --speed 0.5 --save-frames frames/
    """
    analysis = _load_or_exit(analysis_file)
    config = PlaybackConfig(master_gain=master_gain, display_height=display_height)

    frames_dir = None
    if save_frames is not None:
        frames_dir = Path(save_frames)
        frames_dir.mkdir(parents=True, exist_ok=True)

    click.echo(f"noteflow v{__version__}")
    click.echo(f"  Tempo  : {analysis.tempo:g} BPM  |  Speed: {speed:.2f}x")
    click.echo(f"  Frames : {len(analysis.frames)}  |  Pages: {len(pages)}")
    click.echo()

    try:
        asyncio.run(_perform(analysis, load_pages(pages), config, speed, mute, frames_dir))
    except KeyboardInterrupt:
        click.echo()
        click.echo("Stopped.")
        return
    except OSError as exc:
        click.echo(f"  ERROR: Audio output failed — {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo("Done!")


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("analysis_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("pages", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--frame", "frame_number", type=click.IntRange(min=1), default=1, show_default=True,
              help="1-based frame number to draw.")
@click.option("--output", "-o", default="frame.png", show_default=True, metavar="PATH")
@click.option("--display-height", type=click.IntRange(50, 4000), default=400, show_default=True)
def render(
    analysis_file: str,
    pages: tuple[str, ...],
    frame_number: int,
    output: str,
    display_height: int,
) -> None:
    """Draw the highlighted view of a single frame to an image file."""
    analysis = _load_or_exit(analysis_file)
    if frame_number > len(analysis.frames):
        click.echo(f"  ERROR: Frame {frame_number} out of range (1–{len(analysis.frames)}).", err=True)
        sys.exit(1)

    frame = analysis.frames[frame_number - 1]
    canvas = ViewRenderer(display_height=display_height).render(frame, load_pages(pages))
    if canvas is None:
        click.echo(f"  ERROR: Page {frame.page_index + 1} is not available.", err=True)
        sys.exit(1)

    try:
        canvas.save(output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write image — {exc}", err=True)
        sys.exit(1)
    click.echo(f"Wrote frame {frame_number} ({canvas.width}x{canvas.height}) → '{output}'.")


# ── export-midi subcommand ─────────────────────────────────────────────────────

@main.command("export-midi")
@click.argument("analysis_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--output", "-o", default=None, metavar="PATH",
              help="Destination MIDI file path. Defaults to the analysis name with .mid.")
@click.option("--velocity", type=click.IntRange(1, 127), default=80, show_default=True)
def export_midi(analysis_file: str, output: str | None, velocity: int) -> None:
    """Write the frames of an analysis as a MIDI file."""
    from noteflow.midi_exporter import MidiExporter

    analysis = _load_or_exit(analysis_file)
    resolved_output = output if output is not None else str(Path(analysis_file).with_suffix(".mid"))

    try:
        count = MidiExporter(velocity=velocity).export(analysis, resolved_output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write MIDI file — {exc}", err=True)
        sys.exit(1)

    click.echo(f"Wrote {count} note(s) → '{resolved_output}'.")
