"""
SilentMark - Main Entry Point
=============================
Command line tool for visible and hidden image watermarks.

Usage:
    python main.py compose photo.png --text "© NightOwl" --secret "owner: 42"
    python main.py reveal photo_watermarked.png

Architecture:
    - Model: silentmark/core/ (pure algorithms)
    - Adapters: silentmark/adapters.py (image files, fonts)
    - Interface: silentmark/cli.py (Typer commands)

Features:
    - Text and image watermarks, single or tiled, with rotation and opacity
    - Hidden text/image payloads revealed without any key
    - Several hidden payloads per image, revealed in order
"""

from silentmark.cli import app

if __name__ == "__main__":
    app()
