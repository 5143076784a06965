"""`python -m screendimmer.tray` entrypoint.

For installed usage, prefer the `screendimmer` console script.
"""

from __future__ import annotations

from .entrypoint import main


if __name__ == "__main__":
    main()
