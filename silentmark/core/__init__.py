"""
Core Module - Pure Algorithm Logic
==================================
Compositing and steganographic embedding/extraction.
No file I/O happens here; see silentmark.adapters for that.
"""

from .pixels import PixelBuffer
from .models import (
    WatermarkPosition, FontStyle, TextWatermarkSpec, ImageWatermarkSpec,
    WatermarkRequest, PayloadKind, EmbeddedPayload, create_request, validate_request
)
from .geometry import Placement, resolve_placement, tile_placements, tile_spacing
from .compositor import blend, blend_tiled
from .rasterizer import GlyphRenderer, LayerRasterizer
from .stego import BitWalk, LsbCodec, WALK_SEED
from .engine import WatermarkEngine, EngineState

__all__ = [
    "PixelBuffer",
    "WatermarkPosition",
    "FontStyle",
    "TextWatermarkSpec",
    "ImageWatermarkSpec",
    "WatermarkRequest",
    "PayloadKind",
    "EmbeddedPayload",
    "create_request",
    "validate_request",
    "Placement",
    "resolve_placement",
    "tile_placements",
    "tile_spacing",
    "blend",
    "blend_tiled",
    "GlyphRenderer",
    "LayerRasterizer",
    "BitWalk",
    "LsbCodec",
    "WALK_SEED",
    "WatermarkEngine",
    "EngineState",
]
