"""
Engine Configuration
====================
Tunables for WatermarkEngine, with defaults that need no config file.

A JSON file can override any subset of the fields:

    {"max_pixels": 20000000, "tile_spacing_h_ratio": 2.0}
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union


@dataclass
class EngineConfig:
    """Configuration for compose() and reveal()."""

    # Fail fast above this many pixels (background or watermark source)
    DEFAULT_MAX_PIXELS = 40_000_000

    # Spacing between tiles (as ratio of stamp size), 1.0 = edge to edge
    DEFAULT_HORIZONTAL_SPACING_RATIO = 1.5
    DEFAULT_VERTICAL_SPACING_RATIO = 1.2

    max_pixels: int = DEFAULT_MAX_PIXELS
    tile_spacing_h_ratio: float = DEFAULT_HORIZONTAL_SPACING_RATIO
    tile_spacing_v_ratio: float = DEFAULT_VERTICAL_SPACING_RATIO
    glyph_font_size: int = 96  # glyphs are drawn at this size, then scaled
    font_path: Optional[str] = None

    def __post_init__(self):
        if self.max_pixels <= 0:
            raise ValueError("max_pixels must be positive")

        if not 8 <= self.glyph_font_size <= 500:
            raise ValueError("Glyph font size must be between 8 and 500")

        self.tile_spacing_h_ratio = max(1.0, min(10.0, self.tile_spacing_h_ratio))
        self.tile_spacing_v_ratio = max(1.0, min(10.0, self.tile_spacing_v_ratio))


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Read an EngineConfig from a JSON file.

    Missing keys keep their defaults; without a path the defaults are
    returned.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file holds unknown keys or invalid values.
    """
    if path is None:
        return EngineConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        user_config = json.load(f)

    if not isinstance(user_config, dict):
        raise ValueError(f"Config file must hold a JSON object: {config_path}")

    known = {f.name for f in fields(EngineConfig)}
    unknown = set(user_config) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return EngineConfig(**user_config)
