"""
Command Line Interface
======================
    silentmark compose photo.jpg --text "© NightOwl" --secret "owner: 42" --tile
    silentmark reveal photo_watermarked.png
    silentmark capacity photo.png

Naming Convention:
- compose without --output writes {stem}_watermarked.png next to the input
- reveal --dump-dir writes image payloads as payload-{index}.png
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from PIL import ImageColor

from . import __app_name__, __version__
from .adapters import create_engine, decode_image, encode_image
from .builder import WatermarkBuilder
from .config import load_config
from .core.engine import WatermarkEngine
from .core.models import (
    FontStyle, ImageWatermarkSpec, PayloadKind, TextWatermarkSpec, WatermarkPosition
)
from .core.stego import LsbCodec
from .errors import WatermarkError

app = typer.Typer(help=f"{__app_name__}: visible and hidden image watermarks.")

logger = logging.getLogger(__name__)


def _parse_color(value: str):
    try:
        color = ImageColor.getrgb(value)
    except ValueError:
        raise typer.BadParameter(f"Unknown colour: {value}")
    return color if len(color) == 4 else (*color, 255)


def _make_engine(config: Optional[Path]) -> WatermarkEngine:
    try:
        return create_engine(load_config(config))
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"Invalid config: {e}")


def _fail(error: Exception):
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
):
    """Render watermarks onto images and reveal hidden ones."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(message)s"
    )


@app.command("compose")
def compose_command(
    background: Path = typer.Argument(..., help="Background image"),
    texts: Optional[List[str]] = typer.Option(None, "--text", "-t", help="Visible text layer (repeatable)"),
    secrets: Optional[List[str]] = typer.Option(None, "--secret", "-s", help="Hidden text payload (repeatable)"),
    images: Optional[List[Path]] = typer.Option(None, "--image", "-i", help="Visible image layer (repeatable)"),
    hidden_images: Optional[List[Path]] = typer.Option(None, "--hidden-image", help="Hidden image payload (repeatable)"),
    x: float = typer.Option(0.5, help="Horizontal centre, 0-1"),
    y: float = typer.Option(0.5, help="Vertical centre, 0-1"),
    rotation: float = typer.Option(0.0, help="Counter-clockwise rotation in degrees"),
    size: float = typer.Option(0.2, help="Longer side as a fraction of the background"),
    alpha: int = typer.Option(50, help="Text opacity percent, 0-100"),
    image_alpha: int = typer.Option(128, help="Image layer alpha, 0-255"),
    color: str = typer.Option("#000000", help="Text colour (name or #RRGGBB[AA])"),
    font: Optional[Path] = typer.Option(None, help="TrueType font file"),
    tile: bool = typer.Option(False, "--tile", help="Repeat visible layers across the image"),
    encrypt: bool = typer.Option(False, "--encrypt", help="Also hide every visible layer's source"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Output file (PNG recommended)"),
    config: Optional[Path] = typer.Option(None, "--config", help="JSON engine config"),
):
    """Draw visible layers and hide secret payloads in one pass."""
    if not (texts or secrets or images or hidden_images):
        raise typer.BadParameter("Nothing to do: give at least one --text, --secret or --image")

    texts, secrets = texts or [], secrets or []
    images, hidden_images = images or [], hidden_images or []

    engine = _make_engine(config)
    position = WatermarkPosition(x, y, rotation)
    font_style = FontStyle(font_path=str(font) if font else None)
    text_color = _parse_color(color)

    try:
        builder = WatermarkBuilder.from_file(background).tile(tile)

        for path, visible in [(p, True) for p in images] + [(p, False) for p in hidden_images]:
            builder = builder.load_image(ImageWatermarkSpec(
                source_pixels=decode_image(path),
                position=position,
                size_ratio=size,
                alpha_channel=image_alpha,
                visible=visible,
                encrypted=encrypt or not visible
            ))

        for text, visible in [(t, True) for t in texts] + [(s, False) for s in secrets]:
            builder = builder.load_text(TextWatermarkSpec(
                text=text,
                position=position,
                size_ratio=size,
                alpha_percent=alpha,
                color=text_color,
                font_style=font_style,
                visible=visible,
                encrypted=encrypt or not visible
            ))

        result = engine.compose(builder.build(engine.config.max_pixels))

        if output is None:
            output = background.parent / f"{background.stem}_watermarked.png"
        written = encode_image(result, output)

    except WatermarkError as e:
        _fail(e)

    typer.echo(f"Watermarked image written to {written}")


@app.command("reveal")
def reveal_command(
    image: Path = typer.Argument(..., help="Watermarked image (lossless)"),
    dump_dir: Optional[Path] = typer.Option(None, "--dump-dir", help="Where to write image payloads"),
):
    """Print every hidden payload found in an image."""
    try:
        payloads = WatermarkEngine().reveal(decode_image(image))
    except WatermarkError as e:
        _fail(e)

    if not payloads:
        typer.echo("No hidden payload found.")
        raise typer.Exit(code=1)

    for index, payload in enumerate(payloads, start=1):
        if payload.kind is PayloadKind.TEXT:
            try:
                typer.echo(f"[{index}] text: {payload.text}")
            except UnicodeDecodeError:
                typer.echo(f"[{index}] text (not UTF-8): {payload.data!r}")
            continue

        hidden = payload.as_image()
        if dump_dir is None:
            typer.echo(f"[{index}] image: {hidden.width}x{hidden.height} (use --dump-dir to save)")
        else:
            written = encode_image(hidden, dump_dir / f"payload-{index}.png")
            typer.echo(f"[{index}] image: {hidden.width}x{hidden.height} -> {written}")


@app.command("capacity")
def capacity_command(
    image: Path = typer.Argument(..., help="Image to measure"),
):
    """Show how much data an image can hide."""
    try:
        buffer = decode_image(image)
    except WatermarkError as e:
        _fail(e)

    codec = LsbCodec()
    typer.echo(f"Capacity: {codec.capacity(buffer)} bits")
    typer.echo(f"Largest single payload: {codec.max_payload_bytes(buffer)} bytes")


@app.command("version")
def version_command():
    """Show the version."""
    typer.echo(f"{__app_name__} {__version__}")


if __name__ == "__main__":
    app()
