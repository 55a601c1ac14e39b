"""ViewRenderer: draws the magnified page crop and note highlights for a frame."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image, ImageDraw

from noteflow.models import COORDINATE_SCALE, Box, Frame

logger = logging.getLogger(__name__)

# Amber fill with opacity and a solid amber border
HIGHLIGHT_FILL = (251, 191, 36, 115)
HIGHLIGHT_OUTLINE = (245, 158, 11, 230)
HIGHLIGHT_BORDER_WIDTH = 3
MAX_CORNER_RADIUS = 4.0


@dataclass(frozen=True)
class PixelRect:
    """A rectangle in pixels, given by its origin and size."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class HighlightRect(PixelRect):
    """A padded highlight box in canvas pixels plus its corner radius."""

    radius: float = 0.0


def source_rect(region: Box, image_size: tuple[int, int]) -> PixelRect:
    """
    Scale a normalized region onto an image of ``(width, height)`` pixels.

    The result is at least one pixel wide and tall and lies inside the image.
    """
    width, height = image_size
    rect_w = min(float(width), max(1.0, region.width / COORDINATE_SCALE * width))
    rect_h = min(float(height), max(1.0, region.height / COORDINATE_SCALE * height))
    return PixelRect(
        x=min(region.left / COORDINATE_SCALE * width, width - rect_w),
        y=min(region.top / COORDINATE_SCALE * height, height - rect_h),
        width=rect_w,
        height=rect_h,
    )


def canvas_size(rect: PixelRect, display_height: int) -> tuple[int, int]:
    """Fixed height, width following the crop's aspect ratio."""
    width = max(1, int(round(display_height * rect.width / rect.height)))
    return width, display_height


def map_highlight(
    box: Box,
    region: Box,
    size: tuple[int, int],
    padding: float = 2.0,
) -> HighlightRect:
    """
    Map a page-normalized highlight into canvas pixels.

    Position and size are expressed as fractions of the region's own width
    and height, then scaled to the canvas, exactly as the crop is. The box
    is grown by *padding* on every side; the corner radius never exceeds
    half of the unpadded box's width or height.
    """
    canvas_width, canvas_height = size
    region_width = region.width if region.width > 0 else 1.0
    region_height = region.height if region.height > 0 else 1.0

    draw_x = (box.left - region.left) / region_width * canvas_width
    draw_y = (box.top - region.top) / region_height * canvas_height
    draw_w = box.width / region_width * canvas_width
    draw_h = box.height / region_height * canvas_height

    radius = max(0.0, min(MAX_CORNER_RADIUS, draw_w / 2, draw_h / 2))
    return HighlightRect(
        x=draw_x - padding,
        y=draw_y - padding,
        width=max(1.0, draw_w + padding * 2),
        height=max(1.0, draw_h + padding * 2),
        radius=radius,
    )


class ViewRenderer:
    """
    Produces the display canvas for the active frame.

    Every call to ``render`` builds a fresh canvas: the crop of the frame's
    region scaled to a fixed height, with each highlight drawn on top as a
    translucent rounded rectangle. The most recent canvas is kept on
    ``canvas``; a frame whose page image is missing leaves it unchanged.
    """

    def __init__(self, display_height: int = 400, padding: float = 2.0) -> None:
        self.display_height = display_height
        self.padding = padding
        self.canvas: Image.Image | None = None

    def _page_for(self, frame: Frame, pages: Sequence[Image.Image | None]) -> Image.Image | None:
        if not 0 <= frame.page_index < len(pages):
            return None
        return pages[frame.page_index]

    def render(self, frame: Frame, pages: Sequence[Image.Image | None]) -> Image.Image | None:
        """
        Draw *frame* from its page image.

        Returns:
            The new RGBA canvas, or None if the page image is not available.
        """
        page = self._page_for(frame, pages)
        if page is None:
            logger.debug("Page %d not available; skipping draw for %s.", frame.page_index, frame.id)
            return None

        rect = source_rect(frame.region, page.size)
        size = canvas_size(rect, self.display_height)
        crop = page.resize(
            size,
            Image.Resampling.LANCZOS,
            box=(rect.x, rect.y, rect.x + rect.width, rect.y + rect.height),
        ).convert("RGBA")

        canvas = Image.new("RGBA", size, (255, 255, 255, 255))
        canvas.alpha_composite(crop)

        if frame.highlights:
            overlay = Image.new("RGBA", size, (0, 0, 0, 0))
            draw = ImageDraw.Draw(overlay)
            for box in frame.highlights:
                mapped = map_highlight(box, frame.region, size, self.padding)
                draw.rounded_rectangle(
                    (mapped.x, mapped.y, mapped.x + mapped.width, mapped.y + mapped.height),
                    radius=int(round(mapped.radius)),
                    fill=HIGHLIGHT_FILL,
                    outline=HIGHLIGHT_OUTLINE,
                    width=HIGHLIGHT_BORDER_WIDTH,
                )
            canvas.alpha_composite(overlay)

        self.canvas = canvas
        return canvas
