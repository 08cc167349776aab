"""
Placement Geometry
==================
Pure functions turning a WatermarkPosition into pixel coordinates.

Technical Notes:
- A stamp's centre (not its corner) lands on the requested point
- Stamps arrive already rotated; rotation is carried through for reference
- Tiling walks a regular grid row by row, left to right, from the top-left
"""

from dataclasses import dataclass
from typing import Iterator, Tuple

from ..errors import OutOfBoundsError
from .models import WatermarkPosition

Size = Tuple[int, int]


@dataclass(frozen=True)
class Placement:
    """Top-left pixel origin of a stamp plus the rotation it was drawn with."""
    origin_x: int
    origin_y: int
    rotation: float = 0.0

    @property
    def origin(self) -> Tuple[int, int]:
        return self.origin_x, self.origin_y


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def resolve_placement(
        buffer_size: Size,
        position: WatermarkPosition,
        stamp_size: Size,
        clamp: bool = True
) -> Placement:
    """
    Convert a position into the top-left origin of a stamp.

    With clamping, the centre is pulled onto the background and the origin
    is limited so that a stamp which fits lies fully inside it (a stamp
    larger than the background is kept overlapping it).

    Args:
        buffer_size: (width, height) of the background.
        position: Requested centre and rotation.
        stamp_size: (width, height) of the stamp, after rotation.
        clamp: Whether out-of-range positions are pulled back.

    Returns:
        The resolved Placement.

    Raises:
        OutOfBoundsError: If clamping is off and the centre is off the background.
    """
    buf_w, buf_h = buffer_size
    stamp_w, stamp_h = stamp_size

    if position.in_pixels:
        center_x, center_y = position.x, position.y
    else:
        center_x, center_y = position.x * buf_w, position.y * buf_h

    if clamp:
        center_x = _clamp(center_x, 0, buf_w)
        center_y = _clamp(center_y, 0, buf_h)
    elif not (0 <= center_x <= buf_w and 0 <= center_y <= buf_h):
        raise OutOfBoundsError(
            f"Position ({center_x:.1f}, {center_y:.1f}) lies outside the "
            f"{buf_w}x{buf_h} background"
        )

    origin_x = int(round(center_x - stamp_w / 2))
    origin_y = int(round(center_y - stamp_h / 2))

    if clamp:
        origin_x = int(_clamp(origin_x, min(0, buf_w - stamp_w), max(0, buf_w - stamp_w)))
        origin_y = int(_clamp(origin_y, min(0, buf_h - stamp_h), max(0, buf_h - stamp_h)))

    return Placement(origin_x, origin_y, position.rotation_degrees)


def tile_spacing(stamp_size: Size, h_ratio: float, v_ratio: float) -> Size:
    """
    Margin between tiles as a function of stamp size.

    A ratio of 1.0 packs stamps edge to edge, 2.0 leaves one stamp's worth
    of gap.
    """
    stamp_w, stamp_h = stamp_size
    margin_x = int(round(stamp_w * max(0.0, h_ratio - 1.0)))
    margin_y = int(round(stamp_h * max(0.0, v_ratio - 1.0)))
    return margin_x, margin_y


def tile_placements(
        buffer_size: Size,
        stamp_size: Size,
        spacing: Size = (0, 0)
) -> Iterator[Tuple[int, int]]:
    """
    Yield tile origins covering the whole background.

    Each origin owns a grid cell of (stamp + margin) pixels; the cells cover
    every background pixel. The generator makes a single pass.

    Args:
        buffer_size: (width, height) of the background.
        stamp_size: (width, height) of the stamp.
        spacing: (margin_x, margin_y) left after every tile.
    """
    buf_w, buf_h = buffer_size
    stamp_w, stamp_h = stamp_size
    if stamp_w <= 0 or stamp_h <= 0:
        return

    step_x = stamp_w + max(0, spacing[0])
    step_y = stamp_h + max(0, spacing[1])

    for y in range(0, buf_h, step_y):
        for x in range(0, buf_w, step_x):
            yield x, y
