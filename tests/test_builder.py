"""
Tests for the request builder, layer specs, configuration and image adapters.

Run with: python -m pytest tests/test_builder.py -v
"""

import json
import logging

import numpy as np
import pytest
from PIL import Image

from silentmark import WatermarkBuilder
from silentmark.adapters import decode_image, encode_image
from silentmark.config import EngineConfig, load_config
from silentmark.core.models import (
    EmbeddedPayload, ImageWatermarkSpec, PayloadKind, TextWatermarkSpec,
    WatermarkPosition
)
from silentmark.core.pixels import PixelBuffer
from silentmark.errors import ImageTooLargeError, ResourceError, ValidationError


def create_test_image(width: int = 40, height: int = 30) -> PixelBuffer:
    """Create an opaque gradient image."""
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[..., 0] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]
    arr[..., 2] = 128
    arr[..., 3] = 255
    return PixelBuffer(arr)


# -------------------------------------------------------------------- Builder

def test_builder_is_immutable():
    base = WatermarkBuilder.from_pixels(create_test_image())
    extended = base.load_text("© NightOwl").tile()

    assert base.text_layers == ()
    assert base.tile_mode is False
    assert extended.text_layers == (TextWatermarkSpec("© NightOwl"),)
    assert extended.tile_mode is True


def test_builder_collects_layers_in_order():
    logo = ImageWatermarkSpec(create_test_image(4, 4))
    request = (
        WatermarkBuilder.from_pixels(create_test_image())
        .load_text("first")
        .load_texts([TextWatermarkSpec("second"), TextWatermarkSpec("third")])
        .load_image(logo)
        .build()
    )

    assert [layer.text for layer in request.text_layers] == ["first", "second", "third"]
    assert request.layers()[0] is logo
    assert request.layers()[-1].text == "third"


def test_builder_position_override():
    position = WatermarkPosition(0.1, 0.9, 45)
    request = WatermarkBuilder.from_pixels(create_test_image()).load_text("x", position).build()
    assert request.text_layers[0].position == position


def test_builder_validates_on_build():
    builder = WatermarkBuilder.from_pixels(PixelBuffer.new(0, 0)).load_text("x")
    with pytest.raises(ValidationError):
        builder.build()

    builder = WatermarkBuilder.from_pixels(create_test_image()).load_text(
        TextWatermarkSpec("x", alpha_percent=101)
    )
    with pytest.raises(ValidationError):
        builder.build()


def test_builder_enforces_pixel_ceiling():
    builder = WatermarkBuilder.from_pixels(create_test_image(40, 30))
    with pytest.raises(ImageTooLargeError):
        builder.build(max_pixels=1000)


def test_builder_loads_files(tmp_path):
    path = tmp_path / "background.png"
    Image.new("RGB", (12, 8), (1, 2, 3)).save(path)

    builder = WatermarkBuilder.from_file(path).load_image(path)

    assert builder.background.size == (12, 8)
    assert builder.image_layers[0].source_pixels.size == (12, 8)
    assert tuple(builder.background.pixels[0, 0]) == (1, 2, 3, 255)


def test_builder_loads_pillow_snapshot():
    builder = WatermarkBuilder.from_image(Image.new("L", (5, 6), 200))
    assert builder.background.size == (5, 6)
    assert tuple(builder.background.pixels[0, 0]) == (200, 200, 200, 255)


# ---------------------------------------------------------------- Layer specs

def test_with_transforms_return_new_values():
    spec = TextWatermarkSpec("x")
    changed = (
        spec.with_position_x(0.3)
        .with_position_y(0.7)
        .with_rotation(15)
        .with_size(0.5)
        .with_alpha(80)
        .with_color((255, 0, 0, 255))
        .with_visibility(False)
        .with_encryption(True)
    )

    assert spec == TextWatermarkSpec("x")
    assert changed.position == WatermarkPosition(0.3, 0.7, 15)
    assert (changed.size_ratio, changed.alpha_percent) == (0.5, 80)
    assert changed.color == (255, 0, 0, 255)
    assert (changed.visible, changed.encrypted) == (False, True)


def test_image_spec_defaults():
    spec = ImageWatermarkSpec(create_test_image(2, 2))
    assert spec.alpha_channel == 50
    assert spec.size_ratio == 0.2
    assert spec.position == WatermarkPosition(0, 0, 0)
    assert spec.with_alpha(200).alpha_channel == 200


def test_embedded_payload_accessors():
    text = EmbeddedPayload(PayloadKind.TEXT, "héllo".encode("utf-8"))
    assert text.text == "héllo"
    with pytest.raises(ValueError):
        text.as_image()

    source = create_test_image(3, 2)
    image = EmbeddedPayload(PayloadKind.IMAGE, source.to_bytes())
    assert image.as_image() == source
    with pytest.raises(ValueError):
        image.text


# --------------------------------------------------------------------- Config

def test_default_config():
    config = load_config()
    assert config.max_pixels == EngineConfig.DEFAULT_MAX_PIXELS
    assert config.tile_spacing_h_ratio == 1.5
    assert config.tile_spacing_v_ratio == 1.2


def test_config_file_overrides_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"max_pixels": 1234, "tile_spacing_h_ratio": 2.0}), encoding="utf-8")

    config = load_config(path)

    assert config.max_pixels == 1234
    assert config.tile_spacing_h_ratio == 2.0
    assert config.glyph_font_size == 96


def test_config_rejects_unknown_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"password": "x"}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)


def test_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


def test_config_clamps_spacing():
    config = EngineConfig(tile_spacing_h_ratio=0.1, tile_spacing_v_ratio=50)
    assert config.tile_spacing_h_ratio == 1.0
    assert config.tile_spacing_v_ratio == 10.0

    with pytest.raises(ValueError):
        EngineConfig(max_pixels=0)


# ------------------------------------------------------------------- Adapters

def test_decode_missing_file(tmp_path):
    with pytest.raises(ResourceError):
        decode_image(tmp_path / "missing.png")


def test_decode_garbage_file(tmp_path):
    path = tmp_path / "garbage.png"
    path.write_bytes(b"not an image")

    with pytest.raises(ResourceError):
        decode_image(path)


def test_decode_array_and_buffer():
    arr = np.zeros((3, 4, 3), dtype=np.uint8)
    assert decode_image(arr).size == (4, 3)

    buf = create_test_image(4, 3)
    decoded = decode_image(buf)
    assert decoded == buf
    assert decoded is not buf


def test_encode_png_is_lossless(tmp_path):
    buf = create_test_image()
    buf.pixels[0, 0] = (1, 2, 3, 4)

    output = encode_image(buf, tmp_path / "nested" / "out.png")

    assert output.exists()
    assert decode_image(output) == buf


def test_encode_jpeg_warns(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="silentmark.adapters"):
        output = encode_image(create_test_image(), tmp_path / "out.jpg")

    assert output.exists()
    assert "do not survive" in caplog.text
    with Image.open(output) as img:
        assert img.format == "JPEG"
