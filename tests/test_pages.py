"""Unit tests for page image loading."""

from PIL import Image

from noteflow.pages import load_pages


def test_load_pages_keeps_order_and_skips_undecodable(tmp_path) -> None:
    good = tmp_path / "page1.png"
    Image.new("RGB", (40, 20), "white").save(good)
    broken = tmp_path / "page2.png"
    broken.write_bytes(b"not an image")

    pages = load_pages([str(good), str(broken)])

    assert len(pages) == 2
    assert pages[0] is not None
    assert pages[0].size == (40, 20)
    assert pages[1] is None


def test_oversized_page_becomes_missing(tmp_path, monkeypatch) -> None:
    path = tmp_path / "huge.png"
    Image.new("RGB", (10, 10), "white").save(path)

    def refuse(*args, **kwargs):
        raise Image.DecompressionBombError("too many pixels")

    monkeypatch.setattr(Image, "open", refuse)
    assert load_pages([str(path)]) == [None]
