"""
Watermark Data Model
====================
Immutable value types describing a watermark request.

All specs are frozen dataclasses: "setters" are ``with_*`` methods that
return a modified copy, so a request can never be half-configured or
changed while the engine is working on it.

Z-order inside a request: image layers (declared order), then text layers
(declared order). Later layers are drawn on top and, when encrypted, are
embedded after earlier ones.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from ..errors import ImageTooLargeError, ValidationError
from .pixels import RGBA, PixelBuffer


@dataclass(frozen=True)
class WatermarkPosition:
    """
    Where a watermark's centre goes, and how it is rotated.

    x and y are fractions of the background width/height unless
    ``in_pixels`` is set. Rotation is counter-clockwise, in degrees.
    """
    x: float = 0.0
    y: float = 0.0
    rotation_degrees: float = 0.0
    in_pixels: bool = False

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.rotation_degrees))


@dataclass(frozen=True)
class FontStyle:
    """Typeface and decoration of a text watermark."""
    font_path: Optional[str] = None
    stroke_width: int = 0
    background_color: Optional[RGBA] = None  # fills the text box behind the glyphs


class _LayerTransforms:
    """Pure "with" transforms shared by both layer specs."""

    def with_position(self, position: WatermarkPosition):
        return replace(self, position=position)

    def with_position_x(self, x: float):
        return replace(self, position=replace(self.position, x=x))

    def with_position_y(self, y: float):
        return replace(self, position=replace(self.position, y=y))

    def with_rotation(self, degrees: float):
        return replace(self, position=replace(self.position, rotation_degrees=degrees))

    def with_size(self, size_ratio: float):
        return replace(self, size_ratio=size_ratio)

    def with_visibility(self, visible: bool):
        return replace(self, visible=visible)

    def with_encryption(self, encrypted: bool):
        return replace(self, encrypted=encrypted)


@dataclass(frozen=True)
class TextWatermarkSpec(_LayerTransforms):
    """A text layer."""
    text: str
    position: WatermarkPosition = field(default_factory=WatermarkPosition)
    size_ratio: float = 0.2
    alpha_percent: int = 50  # 0-100
    color: RGBA = (0, 0, 0, 255)
    font_style: FontStyle = field(default_factory=FontStyle)
    visible: bool = True
    encrypted: bool = False

    def with_alpha(self, alpha_percent: int) -> "TextWatermarkSpec":
        return replace(self, alpha_percent=alpha_percent)

    def with_color(self, color: RGBA) -> "TextWatermarkSpec":
        return replace(self, color=color)

    def with_font_style(self, font_style: FontStyle) -> "TextWatermarkSpec":
        return replace(self, font_style=font_style)


@dataclass(frozen=True, eq=False)
class ImageWatermarkSpec(_LayerTransforms):
    """An image layer. ``alpha_channel`` (0-255) scales the source alpha."""
    source_pixels: PixelBuffer
    position: WatermarkPosition = field(default_factory=WatermarkPosition)
    size_ratio: float = 0.2
    alpha_channel: int = 50
    visible: bool = True
    encrypted: bool = False

    def with_alpha(self, alpha_channel: int) -> "ImageWatermarkSpec":
        return replace(self, alpha_channel=alpha_channel)


LayerSpec = Union[TextWatermarkSpec, ImageWatermarkSpec]


@dataclass(frozen=True, eq=False)
class WatermarkRequest:
    """Everything the engine needs for one compose() call."""
    background: PixelBuffer
    text_layers: Tuple[TextWatermarkSpec, ...] = ()
    image_layers: Tuple[ImageWatermarkSpec, ...] = ()
    tile_mode: bool = False
    clamp_to_bounds: bool = True

    def layers(self) -> Tuple[LayerSpec, ...]:
        """All layers in z-order (bottom first)."""
        return tuple(self.image_layers) + tuple(self.text_layers)


class PayloadKind(Enum):
    """What an embedded payload holds. Values are written into the frame."""
    TEXT = 1
    IMAGE = 2


@dataclass(frozen=True)
class EmbeddedPayload:
    """A payload recovered from an image."""
    kind: PayloadKind
    data: bytes

    @property
    def text(self) -> str:
        """The payload decoded as UTF-8 text."""
        if self.kind is not PayloadKind.TEXT:
            raise ValueError(f"Payload holds {self.kind.name.lower()} data, not text")
        return self.data.decode("utf-8")

    def as_image(self) -> PixelBuffer:
        """The payload rebuilt as a pixel buffer."""
        if self.kind is not PayloadKind.IMAGE:
            raise ValueError(f"Payload holds {self.kind.name.lower()} data, not an image")
        return PixelBuffer.from_bytes(self.data)


def _check_layer(index: int, layer: LayerSpec, max_pixels: Optional[int]):
    label = f"{type(layer).__name__} #{index}"

    if not layer.position.is_finite():
        raise ValidationError(f"{label}: position must be finite, got {layer.position}")

    if not math.isfinite(layer.size_ratio) or not 0 < layer.size_ratio <= 1:
        raise ValidationError(
            f"{label}: size ratio must be in (0, 1], got {layer.size_ratio}"
        )

    if isinstance(layer, TextWatermarkSpec):
        if not 0 <= layer.alpha_percent <= 100:
            raise ValidationError(
                f"{label}: alpha percent must be between 0 and 100, got {layer.alpha_percent}"
            )
        if layer.font_style.stroke_width < 0:
            raise ValidationError(f"{label}: stroke width cannot be negative")
    else:
        if not 0 <= layer.alpha_channel <= 255:
            raise ValidationError(
                f"{label}: alpha channel must be between 0 and 255, got {layer.alpha_channel}"
            )
        if max_pixels is not None and layer.source_pixels.area > max_pixels:
            raise ImageTooLargeError(layer.source_pixels.area, max_pixels)


def validate_request(request: WatermarkRequest, max_pixels: Optional[int] = None) -> None:
    """
    Check a request before any pixel work is done.

    Raises:
        ValidationError: If the background is empty or a layer is malformed.
        ImageTooLargeError: If the background or a source image exceeds max_pixels.
    """
    background = request.background
    if background.is_empty():
        raise ValidationError(
            f"Background must have a non-zero area, got {background.width}x{background.height}"
        )

    if max_pixels is not None and background.area > max_pixels:
        raise ImageTooLargeError(background.area, max_pixels)

    for index, layer in enumerate(request.layers()):
        _check_layer(index, layer, max_pixels)


def create_request(
        background: PixelBuffer,
        text_layers: Sequence[TextWatermarkSpec] = (),
        image_layers: Sequence[ImageWatermarkSpec] = (),
        tile_mode: bool = False,
        clamp_to_bounds: bool = True,
        max_pixels: Optional[int] = None
) -> WatermarkRequest:
    """
    Assemble and validate a WatermarkRequest.

    Args:
        background: The image the watermarks are drawn on.
        text_layers: Text layers, bottom first.
        image_layers: Image layers, bottom first (drawn below all text).
        tile_mode: Repeat every visible layer across the background.
        clamp_to_bounds: Pull out-of-range positions back onto the background.
        max_pixels: Optional pixel-count ceiling for background and sources.

    Returns:
        The validated request.
    """
    request = WatermarkRequest(
        background=background,
        text_layers=tuple(text_layers),
        image_layers=tuple(image_layers),
        tile_mode=tile_mode,
        clamp_to_bounds=clamp_to_bounds
    )
    validate_request(request, max_pixels)
    return request
