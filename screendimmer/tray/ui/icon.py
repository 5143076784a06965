from __future__ import annotations

import math
from functools import lru_cache

from PIL import Image, ImageDraw

from screendimmer.core.engine.state import Phase


_ICON_SIZE = (64, 64)

_ACTIVE = (255, 200, 40)
_DIMMED = (120, 110, 90)
_DISABLED = (140, 140, 140)
_BUSY = (90, 170, 255)


def icon_color(*, enabled: bool, phase: Phase) -> tuple[int, int, int]:
    if not enabled:
        return _DISABLED
    if phase is Phase.DIMMED:
        return _DIMMED
    if phase in (Phase.DIMMING, Phase.RESTORING, Phase.WAKE_RESET, Phase.EMERGENCY_RESET):
        return _BUSY
    return _ACTIVE


@lru_cache(maxsize=16)
def create_icon(color: tuple[int, int, int], *, rays: bool = True) -> Image.Image:
    """A sun: filled disc plus eight rays (rays hidden when dimmed)."""

    img = Image.new("RGBA", _ICON_SIZE, color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    cx, cy = _ICON_SIZE[0] // 2, _ICON_SIZE[1] // 2

    draw.ellipse((cx - 14, cy - 14, cx + 14, cy + 14), fill=(*color, 255))
    if rays:
        for i in range(8):
            a = i * math.pi / 4
            x0, y0 = cx + 19 * math.cos(a), cy + 19 * math.sin(a)
            x1, y1 = cx + 28 * math.cos(a), cy + 28 * math.sin(a)
            draw.line((x0, y0, x1, y1), fill=(*color, 255), width=4)
    return img


def icon_for(*, enabled: bool, phase: Phase) -> Image.Image:
    return create_icon(icon_color(enabled=enabled, phase=phase), rays=phase is not Phase.DIMMED)
