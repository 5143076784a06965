"""Tray application implementation.

This package holds the ScreenDimmer system tray front end: the status icon,
the user-facing commands and the startup sequence.
"""

from .application import ScreenDimmerTray
from .entrypoint import main

__all__ = ["ScreenDimmerTray", "main"]
