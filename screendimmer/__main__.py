from __future__ import annotations

from screendimmer.tray.entrypoint import main


if __name__ == "__main__":
    main()
