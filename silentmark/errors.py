"""
Error Taxonomy
==============
All exceptions raised by the watermark core.

Families:
- ValidationError: malformed request, surfaced immediately, never retried
- CapacityError: payload or image too large for the operation
- ExtractionError: no readable payload in an image (reveal recovers from it)
- ResourceError: an upstream decode/encode/glyph service failed
"""


class WatermarkError(Exception):
    """Base class for every error raised by silentmark."""


class ValidationError(WatermarkError, ValueError):
    """The request or one of its layers is malformed."""


class EmptyTextError(ValidationError):
    """A text layer has no text (or the text renders no visible glyphs)."""


class EmptySourceError(ValidationError):
    """An image layer's source buffer has zero area."""


class OutOfBoundsError(ValidationError):
    """A placement falls outside the background and clamping is disabled."""


class CapacityError(WatermarkError):
    """The operation does not fit within the available pixels."""


class PayloadTooLargeError(CapacityError):
    """The payload needs more bits than the buffer can hide."""

    def __init__(self, required_bits: int, available_bits: int):
        self.required_bits = required_bits
        self.available_bits = available_bits
        super().__init__(
            f"Payload too large: needs {required_bits} bits, "
            f"only {available_bits} available. "
            "Use a larger or less transparent image, or a shorter payload."
        )


class ImageTooLargeError(CapacityError):
    """An image exceeds the configured pixel-count ceiling."""

    def __init__(self, pixel_count: int, max_pixels: int):
        self.pixel_count = pixel_count
        self.max_pixels = max_pixels
        super().__init__(
            f"Image too large: {pixel_count} pixels (max: {max_pixels})"
        )


class ExtractionError(WatermarkError):
    """Hidden data could not be read back."""


class NoPayloadFoundError(ExtractionError):
    """The walk does not start with a valid payload frame."""


class ResourceError(WatermarkError):
    """An external image or font service failed."""
