"""
SilentMark Package
==================
Visible text/image watermarks plus hidden (LSB) payloads that can be
revealed later from the composited image.

Modules:
    - core: Pure algorithm logic (pixels, geometry, rasterizing,
      compositing, steganography, engine)
    - adapters: Image file and font services
    - builder: Fluent construction of watermark requests
    - cli: Command line entry point

Usage:
    from silentmark import WatermarkBuilder, TextWatermarkSpec, create_engine
"""

__version__ = "1.0.0"
__author__ = "NightOwl"
__app_name__ = "SilentMark"

# Core exports
from .core import (
    PixelBuffer,
    WatermarkPosition,
    FontStyle,
    TextWatermarkSpec,
    ImageWatermarkSpec,
    WatermarkRequest,
    PayloadKind,
    EmbeddedPayload,
    create_request,
    WatermarkEngine,
    EngineState,
    GlyphRenderer,
)
from .adapters import create_engine, decode_image, encode_image, PillowGlyphRenderer
from .builder import WatermarkBuilder
from .config import EngineConfig, load_config
from .errors import (
    WatermarkError,
    ValidationError,
    EmptyTextError,
    EmptySourceError,
    OutOfBoundsError,
    CapacityError,
    PayloadTooLargeError,
    ImageTooLargeError,
    ExtractionError,
    NoPayloadFoundError,
    ResourceError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__app_name__",

    # Core
    "PixelBuffer",
    "WatermarkPosition",
    "FontStyle",
    "TextWatermarkSpec",
    "ImageWatermarkSpec",
    "WatermarkRequest",
    "PayloadKind",
    "EmbeddedPayload",
    "create_request",
    "WatermarkEngine",
    "EngineState",
    "GlyphRenderer",

    # Adapters
    "create_engine",
    "decode_image",
    "encode_image",
    "PillowGlyphRenderer",

    # Builder and config
    "WatermarkBuilder",
    "EngineConfig",
    "load_config",

    # Errors
    "WatermarkError",
    "ValidationError",
    "EmptyTextError",
    "EmptySourceError",
    "OutOfBoundsError",
    "CapacityError",
    "PayloadTooLargeError",
    "ImageTooLargeError",
    "ExtractionError",
    "NoPayloadFoundError",
    "ResourceError",
]
