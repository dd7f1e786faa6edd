"""JSON file storage for the path size snapshot."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import Any

from dusk.utils import xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "dusk"

CACHE_FILE = _DATA_DIR / "disk_data.json"

_write_lock = threading.Lock()


def _resolve(path: Path | None) -> Path:
    return path if path is not None else CACHE_FILE


def _file_mode(target: Path) -> int:
    """Mode for a rewritten *target*: its current one, or what a plain open would give."""
    try:
        return stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def load_cache(path: Path | None = None) -> dict[str, Any]:
    """Load the raw snapshot, returning an empty mapping if missing or unreadable."""
    target = _resolve(path)
    if not target.exists():
        return {}
    try:
        with open(target, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        log.exception("Failed to load cache file: %s", target)
        return {}
    if not isinstance(data, dict):
        log.error("Ignoring cache file with unexpected top-level type: %s", target)
        return {}
    return data


def save_cache(data: dict[str, int], path: Path | None = None) -> bool:
    """Replace the snapshot on disk with *data*.

    The document is written to a temporary file beside the target and moved
    into place, so readers only ever see a complete snapshot. Returns False
    when the write failed; the failure is logged, never raised.
    """
    target = _resolve(path)
    with _write_lock:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.chmod(tmp_name, _file_mode(target))
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError:
            log.exception("Failed to save cache file: %s", target)
            return False
    log.debug("Saved %d cache entries to %s", len(data), target)
    return True
