"""Size measurement of a single filesystem entry."""

from __future__ import annotations

import logging
import os
import re
import stat
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Iterator

from dusk.utils import bytes_to_kb

log = logging.getLogger(__name__)

ProbeProgressCallback = Callable[[str], None]  # (child name relative to the probed dir)

_DU_LINE = re.compile(r"^(\d+)\s+(.+)$")


@dataclass(frozen=True, slots=True)
class Measurement:
    """Outcome of probing one entry."""

    size_kb: int
    is_dir: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DuError(Exception):
    """Raised when the measurement utility exits non-zero."""

    def __init__(self, returncode: int) -> None:
        super().__init__(f"du exited with status {returncode}")
        self.returncode = returncode


def iter_du_readings(path: str, command: str = "du") -> Iterator[tuple[str, int]]:
    """Run ``du -k -d 1`` on *path* and yield ``(path, size_kb)`` per output line.

    Readings are produced as ``du`` prints them. Unparseable lines are
    skipped. Raises ``DuError`` after the last reading if ``du`` failed, and
    ``OSError`` if it could not be started.
    """
    proc = subprocess.Popen(
        [command, "-k", "-d", "1", path],
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
        errors="surrogateescape",
    )
    with proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            match = _DU_LINE.match(line.strip())
            if match:
                yield match.group(2), int(match.group(1))
    if proc.returncode != 0:
        raise DuError(proc.returncode)


class SizeProber:
    """Measures files from metadata and directories with a one-level ``du``.

    ``du`` is asked for the directory total plus one level of child
    subtotals. Only the total is authoritative; the subtotals are forwarded
    to the caller as throttled progress.
    """

    def __init__(self, command: str = "du", progress_interval: float = 0.1) -> None:
        self.command = command
        self.progress_interval = progress_interval

    def measure(self, path: str, on_progress: ProbeProgressCallback | None = None) -> Measurement:
        """Measure *path*. Never raises for filesystem or ``du`` failures."""
        try:
            st = os.lstat(path)
        except OSError as e:
            log.debug("Cannot stat %s: %s", path, e)
            return Measurement(0, error=str(e))

        if not stat.S_ISDIR(st.st_mode):
            return Measurement(bytes_to_kb(st.st_size))
        return self._measure_dir(path, on_progress)

    def _measure_dir(self, path: str, on_progress: ProbeProgressCallback | None) -> Measurement:
        target = os.path.realpath(path)
        total = 0
        last_report = 0.0
        try:
            for reading_path, size in iter_du_readings(path, self.command):
                if os.path.realpath(reading_path) == target:
                    total = size
                    continue
                now = time.monotonic()
                if on_progress and now - last_report >= self.progress_interval:
                    relative = os.path.relpath(reading_path, path)
                    if relative and relative != ".":
                        on_progress(relative)
                    last_report = now
        except DuError as e:
            if total == 0:
                log.debug("%s on %s with no usable total", e, path)
                return Measurement(0, is_dir=True, error=str(e))
            log.debug("%s on %s, keeping total of %d KB", e, path, total)
        except OSError as e:
            log.warning("Could not run %s on %s: %s", self.command, path, e)
            return Measurement(0, is_dir=True, error=str(e))
        return Measurement(total, is_dir=True)
