from __future__ import annotations

from enum import Enum


class PowerEvent(str, Enum):
    WILL_SLEEP = "will_sleep"
    DID_WAKE = "did_wake"
    SCREENS_LOCKED = "screens_locked"
    SCREENS_UNLOCKED = "screens_unlocked"
    SCREENSAVER_STARTED = "screensaver_started"
    SCREENSAVER_STOPPED = "screensaver_stopped"
    DISPLAYS_CHANGED = "displays_changed"
