"""Page image loading."""

import logging
from collections.abc import Iterable

from PIL import Image

logger = logging.getLogger(__name__)


def load_page(path: str) -> Image.Image | None:
    """
    Open and fully decode one page image.

    Returns:
        The decoded image, or None if the file cannot be read or decoded.
        Frames on that page then draw nothing.
    """
    try:
        with Image.open(path) as image:
            image.load()
            return image.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("Could not decode page image '%s': %s", path, exc)
        return None


def load_pages(paths: Iterable[str]) -> list[Image.Image | None]:
    """Decode every page once, keeping the order so list index = pageIndex."""
    return [load_page(path) for path in paths]
