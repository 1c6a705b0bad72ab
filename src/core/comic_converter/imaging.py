"""Page image decoding, JPEG re-compression and fit-to-page layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO

from PIL import Image

from .errors import DecodeError

logger = logging.getLogger(__name__)

# ISO A4 in PDF points.
PAGE_WIDTH = 595.0
PAGE_HEIGHT = 842.0
JPEG_QUALITY = 85
# Transparent pixels flatten to black, as an ARGB bitmap does when compressed to JPEG.
MATTE_COLOR = (0, 0, 0)


@dataclass(frozen=True, slots=True)
class PageLayout:
    scale: float
    offset_x: float
    offset_y: float

    def rect(self, width: int, height: int) -> tuple[float, float, float, float]:
        """Return ``(x0, y0, x1, y1)`` of the placed image on the page."""

        return (
            self.offset_x,
            self.offset_y,
            self.offset_x + width * self.scale,
            self.offset_y + height * self.scale,
        )


@dataclass(frozen=True, slots=True)
class PageImage:
    data: bytes
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class NormalizedPage:
    image: PageImage
    layout: PageLayout


def compute_layout(
    width: int,
    height: int,
    page_width: float = PAGE_WIDTH,
    page_height: float = PAGE_HEIGHT,
) -> PageLayout:
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    scale = min(page_width / width, page_height / height)
    return PageLayout(
        scale=scale,
        offset_x=(page_width - width * scale) / 2,
        offset_y=(page_height - height * scale) / 2,
    )


def _has_alpha(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA"):
        return True
    return image.mode == "P" and "transparency" in image.info


def _to_rgb(image: Image.Image) -> Image.Image:
    if not _has_alpha(image):
        return image.convert("RGB")
    rgba = image.convert("RGBA")
    try:
        flattened = Image.new("RGB", rgba.size, MATTE_COLOR)
        flattened.paste(rgba, mask=rgba.getchannel("A"))
    finally:
        rgba.close()
    return flattened


def normalize_image(data: bytes) -> NormalizedPage:
    """Decode *data*, re-encode it as JPEG and lay it out on an A4 page.

    The decoded bitmap is released before returning; only the compressed
    bytes survive.
    """

    try:
        with Image.open(BytesIO(data)) as source:
            source.load()
            width, height = source.size
            rgb = _to_rgb(source)
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc

    buffer = BytesIO()
    try:
        rgb.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    finally:
        rgb.close()

    layout = compute_layout(width, height)
    logger.debug("Normalized %sx%s image at scale %.4f", width, height, layout.scale)
    return NormalizedPage(image=PageImage(data=buffer.getvalue(), width=width, height=height), layout=layout)


__all__ = [
    "JPEG_QUALITY",
    "NormalizedPage",
    "PAGE_HEIGHT",
    "PAGE_WIDTH",
    "PageImage",
    "PageLayout",
    "compute_layout",
    "normalize_image",
]
