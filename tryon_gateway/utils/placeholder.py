"""Static placeholder shown when no remote strategy produced an image."""

import io
import logging
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from ..models import ImagePayload
from .image_codec import sniff_mime_type


logger = logging.getLogger(__name__)

PLACEHOLDER_SIZE = (600, 800)
PLACEHOLDER_BACKGROUND = "#e2e8f0"
PLACEHOLDER_FOREGROUND = "#1e293b"
PLACEHOLDER_TEXT = "Example try on"


@lru_cache(maxsize=1)
def _render_default() -> bytes:
    img = Image.new("RGB", PLACEHOLDER_SIZE, PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    left, top, right, bottom = draw.textbbox((0, 0), PLACEHOLDER_TEXT, font=font)
    x = (PLACEHOLDER_SIZE[0] - (right - left)) // 2
    y = (PLACEHOLDER_SIZE[1] - (bottom - top)) // 2
    draw.text((x, y), PLACEHOLDER_TEXT, fill=PLACEHOLDER_FOREGROUND, font=font)

    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


def placeholder_image(path: Path | None = None) -> ImagePayload:
    """Return the fixed placeholder payload.

    A configured file wins over the rendered default; an unreadable file
    falls back to the default.
    """
    if path is not None:
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning("Cannot read placeholder %s: %s", path, e)
        else:
            if data:
                return ImagePayload(data=data, mime_type=sniff_mime_type(data))

    return ImagePayload(data=_render_default(), mime_type="image/png")
