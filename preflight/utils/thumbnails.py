import logging
from pathlib import Path
from typing import Optional, Tuple

from django.conf import settings
from PIL import Image, ImageDraw, ImageFont, ImageOps

from ..exceptions import ThumbnailError

logger = logging.getLogger(__name__)

THUMBNAIL_FORMAT = "WEBP"
THUMBNAIL_CONTENT_TYPE = "image/webp"
THUMBNAIL_QUALITY = 85
PLACEHOLDER_BACKGROUND = (241, 241, 241)
PLACEHOLDER_BORDER = (200, 200, 200)
PLACEHOLDER_TEXT = (92, 95, 98)


def _thumbnail_size() -> int:
    return getattr(settings, "PREFLIGHT_THUMBNAIL_SIZE", 400)


def generate_thumbnail(source, output, size: Optional[int] = None) -> Path:
    """Write a WebP preview of ``source`` no larger than ``size`` x ``size``."""
    size = size or _thumbnail_size()
    output = Path(output)
    try:
        with Image.open(source) as image:
            image.seek(0)
            frame = ImageOps.exif_transpose(image)
            if frame.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in frame.getbands() or "transparency" in frame.info
                frame = frame.convert("RGBA" if has_alpha else "RGB")
            frame.thumbnail((size, size))
            frame.save(output, THUMBNAIL_FORMAT, quality=THUMBNAIL_QUALITY)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ThumbnailError(f"Thumbnail generation failed: {exc}") from exc
    return output


def generate_placeholder(output, label: str, size: Optional[int] = None) -> Path:
    """Write a neutral tile labelled with the file type, e.g. "PDF" or "AI/EPS"."""
    size = size or _thumbnail_size()
    output = Path(output)
    try:
        image = Image.new("RGB", (size, size), PLACEHOLDER_BACKGROUND)
        draw = ImageDraw.Draw(image)
        inset = max(2, size // 20)
        draw.rectangle(
            [inset, inset, size - inset - 1, size - inset - 1],
            outline=PLACEHOLDER_BORDER,
            width=max(1, size // 100),
        )
        font = ImageFont.load_default()
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        position = ((size - (right - left)) / 2, (size - (bottom - top)) / 2)
        draw.text(position, label, fill=PLACEHOLDER_TEXT, font=font)
        image.save(output, THUMBNAIL_FORMAT, quality=THUMBNAIL_QUALITY)
    except (OSError, ValueError) as exc:
        raise ThumbnailError(f"Placeholder generation failed: {exc}") from exc
    return output


def render_thumbnail(source, output, label: str) -> Tuple[Optional[Path], bool]:
    """
    Best-effort preview for an item.

    Returns ``(path, is_placeholder)``. When neither the real thumbnail nor the
    placeholder can be produced the path is None and the item simply has no
    preview.
    """
    if source is not None:
        try:
            return generate_thumbnail(source, output), False
        except ThumbnailError as exc:
            logger.warning("Falling back to placeholder thumbnail: %s", exc)

    try:
        return generate_placeholder(output, label), True
    except ThumbnailError:
        logger.exception("Placeholder thumbnail could not be generated for %s", label)
        return None, True
