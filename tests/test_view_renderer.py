"""Unit tests for crop geometry, highlight mapping and ViewRenderer drawing."""

import pytest
from PIL import Image

from conftest import make_frame
from noteflow.models import Box
from noteflow.view_renderer import (
    MAX_CORNER_RADIUS,
    ViewRenderer,
    canvas_size,
    map_highlight,
    source_rect,
)

REGION = Box(top=100, left=200, bottom=300, right=600)
PAGE_SIZE = (2000, 1000)


def _page() -> Image.Image:
    return Image.new("RGB", PAGE_SIZE, "white")


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def test_source_rect_scales_region_to_page_pixels() -> None:
    rect = source_rect(REGION, PAGE_SIZE)
    assert (rect.x, rect.y, rect.width, rect.height) == (400.0, 100.0, 800.0, 200.0)


def test_canvas_has_fixed_height_and_proportional_width() -> None:
    assert canvas_size(source_rect(REGION, PAGE_SIZE), 400) == (1600, 400)


def test_wider_region_gives_wider_canvas() -> None:
    narrow = canvas_size(source_rect(Box(0, 0, 100, 100), PAGE_SIZE), 400)
    wide = canvas_size(source_rect(Box(0, 0, 100, 400), PAGE_SIZE), 400)
    assert narrow[1] == wide[1] == 400
    assert wide[0] == narrow[0] * 4


def test_degenerate_region_still_has_a_pixel() -> None:
    rect = source_rect(Box(500, 500, 500, 500), PAGE_SIZE)
    assert rect.width == 1.0
    assert rect.height == 1.0
    assert canvas_size(rect, 400) == (400, 400)


def test_highlight_equal_to_region_covers_whole_canvas() -> None:
    mapped = map_highlight(REGION, REGION, (1600, 400), padding=2.0)
    assert (mapped.x, mapped.y, mapped.width, mapped.height) == (-2.0, -2.0, 1604.0, 404.0)
    assert mapped.radius == MAX_CORNER_RADIUS


def test_highlight_is_relative_to_the_crop() -> None:
    # A box in the right half, bottom half of the region
    box = Box(top=200, left=400, bottom=250, right=450)
    mapped = map_highlight(box, REGION, (1600, 400), padding=0.0)
    assert (mapped.x, mapped.y, mapped.width, mapped.height) == (800.0, 200.0, 200.0, 100.0)


def test_corner_radius_never_exceeds_half_the_box() -> None:
    tiny = Box(top=150, left=300, bottom=151, right=301)
    mapped = map_highlight(tiny, REGION, (1600, 400), padding=2.0)
    assert mapped.radius == pytest.approx(1.0)
    assert mapped.width == pytest.approx(8.0)


def test_zero_size_highlight_keeps_a_visible_box() -> None:
    point = Box(top=150, left=300, bottom=150, right=300)
    mapped = map_highlight(point, REGION, (1600, 400), padding=0.0)
    assert mapped.width == 1.0
    assert mapped.height == 1.0
    assert mapped.radius == 0.0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def test_render_produces_canvas_of_expected_size() -> None:
    renderer = ViewRenderer(display_height=400)
    canvas = renderer.render(make_frame(0, ["C4"], 1.0, region=REGION), [_page()])
    assert canvas is not None
    assert canvas.size == (1600, 400)
    assert renderer.canvas is canvas


def test_render_draws_highlight_over_the_crop() -> None:
    box = Box(top=200, left=400, bottom=250, right=450)
    frame = make_frame(0, ["C4"], 1.0, region=REGION, highlights=[box])
    canvas = ViewRenderer(display_height=400).render(frame, [_page()])
    assert canvas is not None

    red, green, blue, _ = canvas.getpixel((900, 250))
    assert red > blue
    assert blue < 255
    assert min(canvas.getpixel((100, 50))[:3]) >= 250


def test_render_skips_missing_page() -> None:
    renderer = ViewRenderer()
    first = renderer.render(make_frame(0, ["C4"], 1.0, region=REGION), [_page()])

    assert renderer.render(make_frame(1, ["D4"], 1.0, page_index=1), [_page(), None]) is None
    assert renderer.render(make_frame(2, ["E4"], 1.0, page_index=5), [_page()]) is None
    assert renderer.canvas is first


def test_render_redraws_whole_canvas_each_call() -> None:
    renderer = ViewRenderer(display_height=200)
    pages = [_page()]
    highlighted = make_frame(0, ["C4"], 1.0, region=REGION, highlights=[REGION])
    plain = make_frame(1, ["D4"], 1.0, region=REGION)

    first = renderer.render(highlighted, pages)
    second = renderer.render(plain, pages)

    assert first is not None and second is not None
    assert first is not second
    assert min(second.getpixel((400, 100))[:3]) >= 250
