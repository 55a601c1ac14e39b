"""Ingestion: validate a recognition payload and build the local frame model."""

import json
import logging
import math
import uuid
from collections.abc import Mapping
from typing import Any

from noteflow.models import (
    COORDINATE_SCALE,
    FULL_PAGE,
    MIN_DURATION_BEATS,
    AnalysisResult,
    Box,
    Frame,
)

logger = logging.getLogger(__name__)


class IngestionError(ValueError):
    """The analysis payload has no usable data; no session can be created."""


def _as_number(value: Any) -> float | None:
    """Return *value* as a finite float, or None if it is not one."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _parse_box(value: Any) -> Box | None:
    """
    Convert a ``[top, left, bottom, right]`` list into a Box.

    Bounds are clamped into the 0–1000 scale and swapped when given in the
    wrong order. Anything other than four numbers yields None.
    """
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    numbers = [n for n in (_as_number(v) for v in value) if n is not None]
    if len(numbers) != 4:
        return None
    top, left, bottom, right = (max(0.0, min(COORDINATE_SCALE, n)) for n in numbers)
    return Box(
        top=min(top, bottom),
        left=min(left, right),
        bottom=max(top, bottom),
        right=max(left, right),
    )


def _parse_page_index(value: Any) -> int:
    number = _as_number(value)
    if number is None or number < 0:
        return 0
    return int(number)


def _parse_notes(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(note) for note in value if note is not None)


def _parse_duration(value: Any) -> float:
    number = _as_number(value)
    if number is None or number <= 0:
        return MIN_DURATION_BEATS
    return max(number, MIN_DURATION_BEATS)


def _parse_highlights(value: Any) -> tuple[Box, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    boxes = (_parse_box(item) for item in value)
    return tuple(box for box in boxes if box is not None)


def _parse_frame(raw: Mapping[str, Any], frame_id: str) -> Frame:
    region = _parse_box(raw.get("region", raw.get("box_2d")))
    if region is None:
        logger.warning("Frame %s has no usable region; showing the full page.", frame_id)
        region = FULL_PAGE

    return Frame(
        id=frame_id,
        page_index=_parse_page_index(raw.get("pageIndex", raw.get("page_index"))),
        notes=_parse_notes(raw.get("notes")),
        duration=_parse_duration(raw.get("duration")),
        region=region,
        highlights=_parse_highlights(raw.get("highlights", raw.get("note_coordinates"))),
    )


def parse_analysis(payload: Any) -> AnalysisResult:
    """
    Normalize an externally supplied analysis into an AnalysisResult.

    Only top-level structural problems are fatal. Individual frame fields
    that are missing or degenerate are replaced by safe defaults.

    Args:
        payload: Decoded JSON object ``{"tempo": ..., "frames": [...]}``.

    Returns:
        AnalysisResult with locally assigned frame ids.

    Raises:
        IngestionError: If tempo or frames are missing, frames is empty,
                        or tempo is not a positive number.
    """
    if not isinstance(payload, Mapping):
        raise IngestionError("Analysis has no usable data: expected a JSON object.")

    raw_frames = payload.get("frames")
    if not isinstance(raw_frames, list):
        raise IngestionError("Analysis has no usable data: 'frames' is missing.")

    tempo = _as_number(payload.get("tempo"))
    if tempo is None or tempo <= 0:
        raise IngestionError(
            f"Analysis has no usable data: tempo must be a positive number, got {payload.get('tempo')!r}."
        )

    session_token = uuid.uuid4().hex[:8]
    frames: list[Frame] = []
    for index, raw in enumerate(raw_frames):
        if not isinstance(raw, Mapping):
            logger.warning("Skipping frame %d: expected an object, got %s.", index, type(raw).__name__)
            continue
        frames.append(_parse_frame(raw, f"frame-{index}-{session_token}"))

    if not frames:
        raise IngestionError("Analysis has no usable data: the frame sequence is empty.")

    logger.debug("Ingested %d frame(s) at %.1f BPM.", len(frames), tempo)
    return AnalysisResult(tempo=tempo, frames=tuple(frames))


def load_analysis_file(path: str) -> AnalysisResult:
    """
    Read a JSON analysis from disk and normalize it.

    Raises:
        IngestionError: If the file is not valid JSON or has no usable data.
        OSError: If the file cannot be read.
    """
    with open(path, encoding="utf-8") as fh:
        try:
            payload = json.load(fh)
        except json.JSONDecodeError as exc:
            raise IngestionError(f"Analysis has no usable data: invalid JSON ({exc}).") from exc
    return parse_analysis(payload)
