"""
Image and Font Adapters
=======================
The only place where files, Pillow images and fonts meet the core.

Technical Notes:
- decode_image() honours EXIF orientation and always yields RGBA
- encode_image() writes PNG unless told otherwise; JPEG flattens alpha onto
  white and destroys any hidden payload
- PillowGlyphRenderer caches one font object per (path, size)
- create_engine() wires the Pillow renderer into a WatermarkEngine
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from .config import EngineConfig
from .core.engine import WatermarkEngine
from .core.models import FontStyle
from .core.pixels import PixelBuffer
from .core.rasterizer import GlyphRenderer
from .errors import ResourceError

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, Image.Image, np.ndarray, PixelBuffer]

# Formats that alter low bits and so destroy hidden payloads
LOSSY_FORMATS = {"JPEG", "WEBP"}

# Font files tried in order when no font path is given
FALLBACK_FONTS = (
    "msyh.ttc",  # Windows
    "/System/Library/Fonts/PingFang.ttc",  # macOS
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",  # Linux
)


def image_to_buffer(image: Image.Image) -> PixelBuffer:
    """Convert a Pillow image of any mode into an RGBA PixelBuffer."""
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return PixelBuffer(np.array(image, dtype=np.uint8))


def buffer_to_image(buffer: PixelBuffer) -> Image.Image:
    """Convert a PixelBuffer into a (copied) RGBA Pillow image."""
    return Image.fromarray(buffer.pixels.copy())


def decode_image(source: ImageSource) -> PixelBuffer:
    """
    Turn a file path, Pillow image or array into a PixelBuffer.

    Raises:
        ResourceError: If the file is missing or cannot be decoded.
    """
    if isinstance(source, PixelBuffer):
        return source.copy()

    if isinstance(source, np.ndarray):
        return PixelBuffer.from_array(source)

    if isinstance(source, Image.Image):
        return image_to_buffer(ImageOps.exif_transpose(source))

    path = Path(source)
    if not path.exists():
        raise ResourceError(f"Image not found: {path}")

    try:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img)
            return image_to_buffer(img)
    except (UnidentifiedImageError, OSError) as e:
        raise ResourceError(f"Cannot read image: {path} ({e})") from e


def encode_image(
        buffer: PixelBuffer,
        output_path: Union[str, Path],
        image_format: Optional[str] = None
) -> Path:
    """
    Write a PixelBuffer to disk.

    Args:
        buffer: The image to save.
        output_path: Destination file. Parent directories are created.
        image_format: Pillow format name; guessed from the suffix if None,
                      PNG when the suffix is unknown.

    Returns:
        The path written.

    Raises:
        ResourceError: If Pillow cannot write the file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if image_format is None:
        suffix = output_path.suffix.lower()
        image_format = Image.registered_extensions().get(suffix, "PNG")
    image_format = image_format.upper()

    result = buffer_to_image(buffer)

    if image_format in LOSSY_FORMATS:
        logger.warning(
            "Saving %s as %s: hidden payloads do not survive lossy compression",
            output_path.name, image_format
        )

    try:
        if image_format == "JPEG":
            rgb_result = Image.new("RGB", result.size, (255, 255, 255))
            rgb_result.paste(result, mask=result.split()[3])
            rgb_result.save(output_path, "JPEG", quality=95)
        else:
            result.save(output_path, image_format)
    except (OSError, ValueError, KeyError) as e:
        raise ResourceError(f"Cannot write image: {output_path} ({e})") from e

    return output_path


class PillowGlyphRenderer(GlyphRenderer):
    """
    Glyph renderer backed by Pillow's FreeType bindings.

    Fonts are looked up in this order: the style's font path, the renderer's
    default font path, platform fonts, then Pillow's built-in font.
    """

    def __init__(self, font_path: Optional[str] = None):
        self._font_path = font_path
        self._cached_fonts: Dict[Tuple[Optional[str], int], ImageFont.FreeTypeFont] = {}

    def _get_font(self, font_path: Optional[str], size: int) -> ImageFont.FreeTypeFont:
        """
        Get or create a cached font object.

        Raises:
            ResourceError: If an explicitly requested font cannot be loaded.
        """
        path = font_path or self._font_path
        key = (path, size)

        if key not in self._cached_fonts:
            if path:
                try:
                    self._cached_fonts[key] = ImageFont.truetype(path, size)
                except OSError as e:
                    raise ResourceError(f"Cannot load font: {path} ({e})") from e
            else:
                self._cached_fonts[key] = self._load_fallback_font(size)

        return self._cached_fonts[key]

    @staticmethod
    def _load_fallback_font(size: int) -> ImageFont.FreeTypeFont:
        for candidate in FALLBACK_FONTS:
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
        logger.debug("No system font found, using Pillow's built-in font")
        return ImageFont.load_default(size)

    def render(self, text: str, font_style: FontStyle, target_size: int) -> PixelBuffer:
        font = self._get_font(font_style.font_path, max(1, target_size))
        stroke = max(0, font_style.stroke_width)

        # Measure first so the canvas fits the text exactly
        probe = ImageDraw.Draw(Image.new("L", (1, 1), 0))
        left, top, right, bottom = probe.textbbox(
            (0, 0), text, font=font, stroke_width=stroke
        )
        width = max(1, right - left)
        height = max(1, bottom - top)

        mask = Image.new("L", (width, height), 0)
        draw = ImageDraw.Draw(mask)
        draw.text((-left, -top), text, font=font, fill=255, stroke_width=stroke, stroke_fill=255)

        coverage = np.array(mask, dtype=np.uint8)
        pixels = np.full((height, width, 4), 255, dtype=np.uint8)
        pixels[..., 3] = coverage
        return PixelBuffer(pixels)


# Convenience functions
def create_engine(config: Optional[EngineConfig] = None) -> WatermarkEngine:
    """Build a WatermarkEngine that draws text with PillowGlyphRenderer."""
    config = config or EngineConfig()
    return WatermarkEngine(config, PillowGlyphRenderer(config.font_path))
