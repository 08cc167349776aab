"""
Layer Rasterizer
================
Turns text and image layer specs into standalone RGBA stamps.

Technical Notes:
- A stamp's longer side is size_ratio x the reference length the engine
  passes in (the background's longer side, or its shorter side in tile mode)
- Text is drawn large by the glyph renderer, cropped to its ink and scaled
  down, which keeps small stamps anti-aliased
- Scaling works on premultiplied samples so transparent pixels do not bleed
  dark fringes into the edges
- Rotation is applied last with expand=True so nothing is clipped
"""

from typing import Optional, Protocol, Tuple

import cv2
import numpy as np
from PIL import Image

from ..errors import EmptySourceError, EmptyTextError, ResourceError
from .compositor import blend
from .models import FontStyle, ImageWatermarkSpec, LayerSpec, TextWatermarkSpec
from .pixels import PixelBuffer


class GlyphRenderer(Protocol):
    """Rasterizes text into a coverage mask."""

    def render(self, text: str, font_style: FontStyle, target_size: int) -> PixelBuffer:
        """
        Draw ``text`` with glyphs ``target_size`` pixels high.

        Returns:
            White RGBA buffer whose alpha channel is the glyph coverage.
        """
        ...


def fit_longer_side(size: Tuple[int, int], size_ratio: float, reference_length: int) -> Tuple[int, int]:
    """
    Scale ``size`` uniformly so its longer side is size_ratio x reference_length.

    Both sides are at least one pixel.
    """
    width, height = size
    longer = max(1, int(round(size_ratio * reference_length)))
    scale = longer / max(width, height)
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def _interpolation(current: Tuple[int, int], target: Tuple[int, int]) -> int:
    if target[0] * target[1] < current[0] * current[1]:
        return cv2.INTER_AREA
    return cv2.INTER_LINEAR


def scale_buffer(buffer: PixelBuffer, size: Tuple[int, int]) -> PixelBuffer:
    """Resample a buffer to ``size`` (width, height)."""
    if buffer.size == tuple(size):
        return buffer.copy()

    samples = buffer.pixels.astype(np.float32)
    alpha = samples[..., 3:4] / 255.0
    samples[..., :3] *= alpha

    scaled = cv2.resize(samples, tuple(size), interpolation=_interpolation(buffer.size, size))

    scaled_alpha = scaled[..., 3:4] / 255.0
    with np.errstate(divide="ignore", invalid="ignore"):
        scaled[..., :3] = np.where(scaled_alpha > 0, scaled[..., :3] / scaled_alpha, 0)

    return PixelBuffer(np.clip(np.round(scaled), 0, 255).astype(np.uint8))


def scale_alpha(buffer: PixelBuffer, factor: float) -> None:
    """Multiply every alpha sample by ``factor`` (0-1), in place."""
    alpha = buffer.alpha.astype(np.float64) * factor
    buffer.pixels[..., 3] = np.clip(np.round(alpha), 0, 255).astype(np.uint8)


def rotate_buffer(buffer: PixelBuffer, degrees: float) -> PixelBuffer:
    """
    Rotate counter-clockwise into an expanded bounding stamp.

    Pillow resamples RGBA through its premultiplied mode, and the corners
    uncovered by the rotation are fully transparent.
    """
    if degrees % 360 == 0:
        return buffer

    tile = Image.fromarray(buffer.pixels)
    tile = tile.rotate(degrees, expand=True, resample=Image.BICUBIC)
    return PixelBuffer(np.array(tile, dtype=np.uint8))


class LayerRasterizer:
    """
    Produces the stamp for one layer, independent of where it goes.

    Text glyphs come from a GlyphRenderer; this class only applies size,
    colour, alpha and rotation. Without a renderer only image layers can be
    rasterized.
    """

    DEFAULT_GLYPH_FONT_SIZE = 96

    def __init__(
            self,
            glyph_renderer: Optional[GlyphRenderer] = None,
            glyph_font_size: int = DEFAULT_GLYPH_FONT_SIZE
    ):
        """
        Initialize the LayerRasterizer.

        Args:
            glyph_renderer: Text rasterization service, e.g.
                            silentmark.adapters.PillowGlyphRenderer.
            glyph_font_size: Pixel size glyphs are drawn at before scaling.
        """
        self._glyph_renderer = glyph_renderer
        self._glyph_font_size = glyph_font_size

    def rasterize(self, layer: LayerSpec, reference_length: int) -> PixelBuffer:
        if isinstance(layer, TextWatermarkSpec):
            return self.rasterize_text(layer, reference_length)
        return self.rasterize_image(layer, reference_length)

    def rasterize_text(self, spec: TextWatermarkSpec, reference_length: int) -> PixelBuffer:
        """
        Rasterize a text layer.

        Args:
            spec: The text layer.
            reference_length: Length the size ratio is applied to.

        Returns:
            RGBA stamp, glyphs in the spec's colour, transparent elsewhere
            (or the font style's background colour).

        Raises:
            EmptyTextError: If the text is empty or renders no ink.
            ResourceError: If no glyph renderer was configured.
        """
        if not spec.text or not spec.text.strip():
            raise EmptyTextError("Watermark text cannot be empty")

        if self._glyph_renderer is None:
            raise ResourceError("No glyph renderer configured, cannot draw text layers")

        glyphs = self._glyph_renderer.render(spec.text, spec.font_style, self._glyph_font_size)
        bbox = glyphs.content_bbox()
        if bbox is None:
            raise EmptyTextError(f"Watermark text renders no visible glyphs: {spec.text!r}")
        glyphs = glyphs.crop(*bbox)

        width, height = fit_longer_side(glyphs.size, spec.size_ratio, reference_length)
        coverage = cv2.resize(
            np.ascontiguousarray(glyphs.alpha),
            (width, height),
            interpolation=_interpolation(glyphs.size, (width, height))
        )

        red, green, blue, color_alpha = spec.color
        ink = np.empty((height, width, 4), dtype=np.uint8)
        ink[..., :3] = (red, green, blue)
        ink[..., 3] = np.round(coverage.astype(np.float64) * color_alpha / 255.0).astype(np.uint8)

        background_color = spec.font_style.background_color or (0, 0, 0, 0)
        stamp = PixelBuffer.new(width, height, background_color)
        blend(stamp, PixelBuffer(ink), (0, 0))

        scale_alpha(stamp, spec.alpha_percent / 100.0)
        return rotate_buffer(stamp, spec.position.rotation_degrees)

    def rasterize_image(self, spec: ImageWatermarkSpec, reference_length: int) -> PixelBuffer:
        """
        Rasterize an image layer.

        Raises:
            EmptySourceError: If the source buffer has zero area.
        """
        source = spec.source_pixels
        if source.is_empty():
            raise EmptySourceError(
                f"Watermark image has zero area: {source.width}x{source.height}"
            )

        stamp = scale_buffer(source, fit_longer_side(source.size, spec.size_ratio, reference_length))
        scale_alpha(stamp, spec.alpha_channel / 255.0)
        return rotate_buffer(stamp, spec.position.rotation_degrees)
