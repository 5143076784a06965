from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Optional, TypeVar

T = TypeVar("T")


def start_line_monitor(
    *,
    name: str,
    cmd: Sequence[str],
    parse: Callable[[Iterable[str]], Iterator[T]],
    is_running: Callable[[], bool],
    on_event: Callable[[T], None],
    logger,
) -> Optional[Callable[[], None]]:
    """Run `cmd` on a daemon thread and feed its stdout through `parse`.

    Returns a stopper that terminates the subprocess, or None if it could not start.
    """

    try:
        process = subprocess.Popen(
            list(cmd),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            universal_newlines=True,
            bufsize=1,
        )
    except OSError as exc:
        logger.warning("%s monitoring unavailable (%s not started: %s)", name, cmd[0], exc)
        return None

    # For type-checkers: stdout is only None if stdout=DEVNULL/None.
    assert process.stdout is not None
    stdout = process.stdout

    def _lines() -> Iterator[str]:
        while is_running():
            line = stdout.readline()
            if not line:
                return
            yield line

    def _run() -> None:
        logger.info("%s monitoring started", name)
        try:
            for event in parse(_lines()):
                if not is_running():
                    break
                on_event(event)
        except Exception as exc:
            logger.exception("%s monitoring failed: %s", name, exc)
        finally:
            if process.poll() is None:
                process.terminate()
        logger.debug("%s monitoring stopped", name)

    threading.Thread(target=_run, name=f"{name}-monitor", daemon=True).start()

    def _stop() -> None:
        if process.poll() is None:
            process.terminate()

    return _stop
