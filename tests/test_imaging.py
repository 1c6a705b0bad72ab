from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from conftest import image_bytes
from core.comic_converter.errors import DecodeError
from core.comic_converter.imaging import PAGE_HEIGHT, PAGE_WIDTH, compute_layout, normalize_image


def test_layout_fits_tall_image():
    layout = compute_layout(1000, 2000)
    assert layout.scale == pytest.approx(0.421, abs=1e-3)
    assert layout.offset_y == pytest.approx(0.0)
    assert layout.offset_x == pytest.approx((PAGE_WIDTH - 1000 * layout.scale) / 2)


def test_layout_fits_wide_image():
    layout = compute_layout(2000, 1000)
    assert layout.scale == pytest.approx(PAGE_WIDTH / 2000)
    assert layout.offset_x == pytest.approx(0.0)
    x0, y0, x1, y1 = layout.rect(2000, 1000)
    assert (x1 - x0) == pytest.approx(PAGE_WIDTH)
    assert y0 + y1 == pytest.approx(PAGE_HEIGHT)


def test_layout_upscales_small_image():
    assert compute_layout(10, 10).scale == pytest.approx(PAGE_WIDTH / 10)


def test_layout_rejects_empty_dimensions():
    with pytest.raises(ValueError):
        compute_layout(0, 10)


def test_normalize_png_produces_jpeg():
    page = normalize_image(image_bytes(30, 50))
    assert page.image.data[:2] == b"\xff\xd8"
    assert (page.image.width, page.image.height) == (30, 50)


def test_transparent_pixels_flatten_to_black():
    page = normalize_image(image_bytes(8, 8, color=(255, 255, 255, 0)))
    with Image.open(BytesIO(page.image.data)) as decoded:
        assert decoded.mode == "RGB"
        assert max(decoded.getpixel((4, 4))) < 16


def test_first_frame_of_animation_is_used():
    buffer = BytesIO()
    frames = [Image.new("RGB", (12, 16), "red"), Image.new("RGB", (12, 16), "blue")]
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:])
    page = normalize_image(buffer.getvalue())
    with Image.open(BytesIO(page.image.data)) as decoded:
        red, _, blue = decoded.getpixel((6, 8))
    assert red > blue


def test_undecodable_bytes_raise_decode_error():
    with pytest.raises(DecodeError) as exc:
        normalize_image(b"definitely not an image")
    assert exc.value.code == "DECODE_FAILED"
