"""ScreenDimmer: idle dimming and restore for displays controlled through the Lunar CLI."""

__version__ = "0.4.0"
