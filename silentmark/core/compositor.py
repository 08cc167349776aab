"""
Compositor
==========
Alpha-blends stamps onto a background buffer.

Technical Notes:
- Standard "over" operator on straight (non-premultiplied) RGBA
- Stamp pixels that fall off the canvas are dropped silently
- Pixels where the stamp alpha is 0 are never written, so a fully
  transparent stamp leaves the background bit-for-bit unchanged
- Blending is NOT idempotent: alpha accumulates on every call
"""

from typing import Iterable, Tuple

import numpy as np

from .pixels import PixelBuffer


def blend(background: PixelBuffer, stamp: PixelBuffer, origin: Tuple[int, int]) -> None:
    """
    Composite ``stamp`` over ``background`` in place.

    Args:
        background: Destination buffer, modified in place.
        stamp: Source buffer, read only.
        origin: (x, y) of the stamp's top-left corner on the background.
    """
    origin_x, origin_y = origin
    bg_w, bg_h = background.size
    st_w, st_h = stamp.size

    left = max(0, origin_x)
    top = max(0, origin_y)
    right = min(bg_w, origin_x + st_w)
    bottom = min(bg_h, origin_y + st_h)
    if left >= right or top >= bottom:
        return

    src = stamp.pixels[top - origin_y:bottom - origin_y, left - origin_x:right - origin_x]
    dst = background.pixels[top:bottom, left:right]

    mask = src[..., 3] > 0
    if not mask.any():
        return

    s = src[mask].astype(np.float64) / 255.0
    d = dst[mask].astype(np.float64) / 255.0
    src_a = s[:, 3:4]
    dst_a = d[:, 3:4]

    out_a = src_a + dst_a * (1.0 - src_a)
    # out_a > 0 wherever the mask holds
    out_rgb = (s[:, :3] * src_a + d[:, :3] * dst_a * (1.0 - src_a)) / out_a

    out = np.concatenate([out_rgb, out_a], axis=1)
    dst[mask] = np.clip(np.round(out * 255.0), 0, 255).astype(np.uint8)


def blend_tiled(
        background: PixelBuffer,
        stamp: PixelBuffer,
        placements: Iterable[Tuple[int, int]]
) -> int:
    """
    Blend the same stamp at every placement.

    Returns:
        Number of placements blended.
    """
    count = 0
    for origin in placements:
        blend(background, stamp, origin)
        count += 1
    return count
