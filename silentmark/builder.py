"""
Watermark Builder
=================
Fluent, immutable front end that assembles a WatermarkRequest.

Every method returns a new builder, so a half-built configuration can be
shared and extended without affecting other users of it.

Usage:
    request = (
        WatermarkBuilder.from_file("photo.png")
        .load_text(TextWatermarkSpec("© NightOwl", size_ratio=0.3))
        .load_text(TextWatermarkSpec("owner: 42", visible=False, encrypted=True))
        .tile(True)
        .build()
    )
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from .adapters import ImageSource, decode_image
from .core.models import (
    ImageWatermarkSpec, TextWatermarkSpec, WatermarkPosition,
    WatermarkRequest, create_request
)
from .core.pixels import PixelBuffer


@dataclass(frozen=True, eq=False)
class WatermarkBuilder:
    """Immutable builder for WatermarkRequest."""
    background: PixelBuffer
    text_layers: Tuple[TextWatermarkSpec, ...] = ()
    image_layers: Tuple[ImageWatermarkSpec, ...] = ()
    tile_mode: bool = False
    clamp_to_bounds: bool = True

    @classmethod
    def from_pixels(cls, background: PixelBuffer) -> "WatermarkBuilder":
        return cls(background=background)

    @classmethod
    def from_file(cls, path) -> "WatermarkBuilder":
        """Load the background from an image file."""
        return cls(background=decode_image(path))

    @classmethod
    def from_image(cls, image: ImageSource) -> "WatermarkBuilder":
        """Load the background from a Pillow image or numpy array snapshot."""
        return cls(background=decode_image(image))

    def load_text(
            self,
            text,
            position: Optional[WatermarkPosition] = None
    ) -> "WatermarkBuilder":
        """
        Add one text layer on top of the existing ones.

        Args:
            text: A TextWatermarkSpec, or a plain string for default styling.
            position: Overrides the layer's position when given.
        """
        spec = text if isinstance(text, TextWatermarkSpec) else TextWatermarkSpec(text=text)
        if position is not None:
            spec = spec.with_position(position)
        return replace(self, text_layers=self.text_layers + (spec,))

    def load_texts(self, specs: Sequence[TextWatermarkSpec]) -> "WatermarkBuilder":
        return replace(self, text_layers=self.text_layers + tuple(specs))

    def load_image(
            self,
            image,
            position: Optional[WatermarkPosition] = None
    ) -> "WatermarkBuilder":
        """
        Add one image layer on top of the existing image layers.

        Args:
            image: An ImageWatermarkSpec, or anything decode_image accepts.
            position: Overrides the layer's position when given.
        """
        if isinstance(image, ImageWatermarkSpec):
            spec = image
        else:
            spec = ImageWatermarkSpec(source_pixels=decode_image(image))
        if position is not None:
            spec = spec.with_position(position)
        return replace(self, image_layers=self.image_layers + (spec,))

    def load_images(self, specs: Sequence[ImageWatermarkSpec]) -> "WatermarkBuilder":
        return replace(self, image_layers=self.image_layers + tuple(specs))

    def tile(self, tile_mode: bool = True) -> "WatermarkBuilder":
        return replace(self, tile_mode=tile_mode)

    def clamp(self, clamp_to_bounds: bool = True) -> "WatermarkBuilder":
        return replace(self, clamp_to_bounds=clamp_to_bounds)

    def build(self, max_pixels: Optional[int] = None) -> WatermarkRequest:
        """
        Validate and return the request.

        Raises:
            ValidationError: If the background or a layer is malformed.
            ImageTooLargeError: If an image exceeds max_pixels.
        """
        return create_request(
            background=self.background,
            text_layers=self.text_layers,
            image_layers=self.image_layers,
            tile_mode=self.tile_mode,
            clamp_to_bounds=self.clamp_to_bounds,
            max_pixels=max_pixels
        )
