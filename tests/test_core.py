"""
Tests for the pixel buffer, placement geometry and compositor.

Run with: python -m pytest tests/test_core.py -v
"""

import numpy as np
import pytest

from silentmark.core.compositor import blend, blend_tiled
from silentmark.core.geometry import resolve_placement, tile_placements, tile_spacing
from silentmark.core.models import WatermarkPosition
from silentmark.core.pixels import PixelBuffer
from silentmark.errors import OutOfBoundsError


def create_test_image(width: int = 80, height: int = 60) -> PixelBuffer:
    """Create an opaque gradient image."""
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[..., 0] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]
    arr[..., 1] = np.linspace(0, 255, height, dtype=np.uint8)[:, np.newaxis]
    arr[..., 2] = 128
    arr[..., 3] = 255
    return PixelBuffer(arr)


# ---------------------------------------------------------------- PixelBuffer

def test_new_buffer_is_filled():
    buf = PixelBuffer.new(4, 3, (1, 2, 3, 4))
    assert buf.size == (4, 3)
    assert buf.pixels.shape == (3, 4, 4)
    assert (buf.pixels == (1, 2, 3, 4)).all()


def test_from_array_adds_opaque_alpha():
    rgb = np.full((2, 5, 3), 7, dtype=np.uint8)
    buf = PixelBuffer.from_array(rgb)
    assert buf.size == (5, 2)
    assert (buf.alpha == 255).all()
    assert (buf.pixels[..., :3] == 7).all()


def test_from_array_rejects_bad_shape():
    with pytest.raises(ValueError):
        PixelBuffer.from_array(np.zeros((2, 2, 5), dtype=np.uint8))


def test_copy_does_not_alias():
    buf = create_test_image(8, 8)
    clone = buf.copy()
    clone.pixels[0, 0] = (0, 0, 0, 0)
    assert buf != clone
    assert tuple(buf.pixels[0, 0]) != (0, 0, 0, 0)


def test_serialization_restores_pixels():
    buf = create_test_image(7, 3)
    assert PixelBuffer.from_bytes(buf.to_bytes()) == buf


def test_from_bytes_rejects_truncated_data():
    data = create_test_image(4, 4).to_bytes()
    with pytest.raises(ValueError):
        PixelBuffer.from_bytes(data[:-1])
    with pytest.raises(ValueError):
        PixelBuffer.from_bytes(b"\x00\x01")


def test_content_bbox():
    buf = PixelBuffer.new(10, 10)
    assert buf.content_bbox() is None

    buf.pixels[2:5, 3:8, 3] = 10
    assert buf.content_bbox() == (3, 2, 8, 5)


def test_zero_area_buffer_is_empty():
    assert PixelBuffer.new(0, 5).is_empty()
    assert not PixelBuffer.new(1, 1).is_empty()


# ------------------------------------------------------------------- Geometry

def test_stamp_centre_lands_on_position():
    placement = resolve_placement((100, 100), WatermarkPosition(0.5, 0.5, 30), (20, 10))
    assert placement.origin == (40, 45)
    assert placement.rotation == 30


def test_position_in_pixels():
    position = WatermarkPosition(30, 20, in_pixels=True)
    placement = resolve_placement((100, 100), position, (10, 10))
    assert placement.origin == (25, 15)


def test_out_of_range_position_is_clamped_inside():
    stamp_w, stamp_h = 30, 10
    placement = resolve_placement((100, 100), WatermarkPosition(1.5, -0.5), (stamp_w, stamp_h))

    assert 0 <= placement.origin_x <= 100 - stamp_w
    assert 0 <= placement.origin_y <= 100 - stamp_h
    assert placement.origin == (70, 0)


def test_corner_position_keeps_stamp_inside():
    placement = resolve_placement((100, 80), WatermarkPosition(0, 0), (20, 20))
    assert placement.origin == (0, 0)

    placement = resolve_placement((100, 80), WatermarkPosition(1, 1), (20, 20))
    assert placement.origin == (80, 60)


def test_oversized_stamp_still_overlaps():
    placement = resolve_placement((50, 50), WatermarkPosition(0, 0.5), (80, 20))
    assert placement.origin_x == -30
    assert placement.origin_x + 80 > 0


def test_out_of_range_position_without_clamping_fails():
    with pytest.raises(OutOfBoundsError):
        resolve_placement((100, 100), WatermarkPosition(1.5, -0.5), (10, 10), clamp=False)


def test_unclamped_position_may_hang_off_the_edge():
    placement = resolve_placement((100, 100), WatermarkPosition(1.0, 0.0), (10, 10), clamp=False)
    assert placement.origin == (95, -5)


def test_tile_spacing_scales_with_stamp():
    assert tile_spacing((20, 10), 1.5, 1.2) == (10, 2)
    assert tile_spacing((20, 10), 1.0, 0.5) == (0, 0)


@pytest.mark.parametrize("stamp_h, expected", [(5, 1), (10, 2), (15, 3), (20, 4), (25, 5)])
def test_default_vertical_margin_is_not_truncated(stamp_h, expected):
    # 1.2 - 1.0 is slightly below 0.2 in floating point
    assert tile_spacing((10, stamp_h), 1.0, 1.2)[1] == expected


def test_tile_placements_order():
    origins = list(tile_placements((10, 6), (4, 3)))
    assert origins == [(0, 0), (4, 0), (8, 0), (0, 3), (4, 3), (8, 3)]


def test_tile_placements_single_pass():
    placements = tile_placements((10, 10), (5, 5))
    assert len(list(placements)) == 4
    assert list(placements) == []


@pytest.mark.parametrize("spacing", [(0, 0), (4, 2)])
def test_tiles_cover_every_pixel(spacing):
    buf_w, buf_h = 37, 23
    stamp_w, stamp_h = 9, 7
    covered = np.zeros((buf_h, buf_w), dtype=bool)

    # A tile owns its grid cell: the stamp plus the margin to its right and
    # below. The stamps alone leave the margins uncovered.
    for x, y in tile_placements((buf_w, buf_h), (stamp_w, stamp_h), spacing):
        covered[y:y + stamp_h + spacing[1], x:x + stamp_w + spacing[0]] = True

    assert covered.all()


def test_tiles_never_overlap():
    stamp_w, stamp_h = 9, 7
    hits = np.zeros((40, 40), dtype=np.int32)
    for x, y in tile_placements((40, 40), (stamp_w, stamp_h), (3, 1)):
        hits[y:y + stamp_h, x:x + stamp_w] += 1
    assert hits.max() == 1


# ----------------------------------------------------------------- Compositor

def test_opaque_stamp_replaces_pixels():
    background = PixelBuffer.new(10, 10, (255, 255, 255, 255))
    stamp = PixelBuffer.new(3, 3, (255, 0, 0, 255))

    blend(background, stamp, (2, 2))

    assert (background.pixels[2:5, 2:5] == (255, 0, 0, 255)).all()
    assert (background.pixels[0:2] == 255).all()
    assert (background.pixels[5:] == 255).all()


def test_alpha_over_formula():
    background = PixelBuffer.new(1, 1, (0, 0, 255, 255))
    stamp = PixelBuffer.new(1, 1, (255, 0, 0, 128))

    blend(background, stamp, (0, 0))

    assert tuple(background.pixels[0, 0]) == (128, 0, 127, 255)


def test_stamp_on_transparent_background_keeps_its_colour():
    background = PixelBuffer.new(2, 2)
    stamp = PixelBuffer.new(2, 2, (10, 20, 30, 100))

    blend(background, stamp, (0, 0))

    assert (background.pixels == (10, 20, 30, 100)).all()


def test_transparent_stamp_changes_nothing():
    background = create_test_image(20, 20)
    original = background.copy()

    blend(background, PixelBuffer.new(20, 20, (255, 0, 0, 0)), (0, 0))

    assert background == original


def test_off_canvas_pixels_are_dropped():
    background = PixelBuffer.new(8, 8, (0, 0, 0, 255))
    stamp = PixelBuffer.new(10, 10, (255, 255, 255, 255))

    blend(background, stamp, (-5, -5))
    assert (background.pixels[:5, :5] == 255).all()
    assert (background.pixels[5:, :, 0] == 0).all()

    untouched = background.copy()
    blend(background, stamp, (100, 100))
    assert background == untouched


def test_repeated_blend_accumulates_alpha():
    background = PixelBuffer.new(1, 1)
    stamp = PixelBuffer.new(1, 1, (255, 255, 255, 128))

    blend(background, stamp, (0, 0))
    first = int(background.alpha[0, 0])
    blend(background, stamp, (0, 0))
    second = int(background.alpha[0, 0])

    assert first == 128
    assert second > first


def test_blend_tiled_counts_placements():
    background = PixelBuffer.new(10, 10)
    stamp = PixelBuffer.new(5, 5, (0, 255, 0, 255))

    count = blend_tiled(background, stamp, tile_placements((10, 10), (5, 5)))

    assert count == 4
    assert (background.pixels == (0, 255, 0, 255)).all()
