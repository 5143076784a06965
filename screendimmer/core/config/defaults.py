"""Default configuration values.

Split out from `screendimmer.core.config` to keep that module small and focused.
"""

from __future__ import annotations

DEFAULTS: dict = {
    # Seconds of user inactivity before screens dim.
    "idle_timeout": 300,
    # Target level (-100..100). Negative values use subzero (gamma) dimming,
    # positive values use hardware brightness.
    "dim_level": 10,
    # Added to the dim level for the internal (built-in) display only.
    "internal_display_gain": 0,
    # Lunar CLI used for every brightness read/write.
    "lunar_path": "~/.local/bin/lunar",
    # Process that has to be running for the CLI to work. None disables the check.
    "lunar_process_name": None,
    # Argv used to relaunch the process after an emergency reset. Empty disables relaunching.
    "lunar_launch_command": [],
    # Verbose (DEBUG) logging.
    "logging": False,
    # Idle check period in seconds.
    "check_interval": 5,
    # Minimum seconds between processed unlock events.
    "unlock_debounce_interval": 0.5,
    # Hot-plug handling: burst debounce, then settle before re-dimming.
    "display_change_debounce_interval": 1.0,
    "display_change_settle_delay": 2.0,
    # Grace periods before idle checks resume after unlock / screensaver / wake.
    "unlock_grace_period": 3.0,
    "screensaver_grace_period": 3.0,
    "wake_grace_period": 10.0,
    # Optional dim/restore order, e.g. {"Built-in": 1, "DELL U2720Q": 2}.
    "display_priorities": {},
    # Optional per-display dim level overrides, same keys as display_priorities.
    "display_dim_levels": {},
    # Priority for displays not listed in display_priorities.
    "default_display_priority": 999,
    # Start dimming as soon as the tray launches.
    "autostart": True,
}
