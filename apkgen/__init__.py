"""Crosswalk apk generator: validates an HTML5 app and a toolchain, then drives the Android SDK."""

from .cli import main

__all__ = ["main"]
