"""Shared utility functions."""

from __future__ import annotations

import logging
import os
import shutil
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

log = logging.getLogger(__name__)

_KB_PER_MB = 1024
_KB_PER_GB = 1024 * 1024


def has_command(name: str) -> bool:
    """Check if a command exists on the system."""
    return shutil.which(name) is not None


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Return the canonical cache key for *path*.

    The path is made absolute and every ancestor is resolved, but the final
    component is kept as-is so a symlink child is keyed by its own location
    rather than its target.
    """
    absolute = os.path.abspath(os.fspath(path))
    parent, name = os.path.split(absolute)
    if not name:
        return parent
    return os.path.join(os.path.realpath(parent), name)


def bytes_to_kb(size_bytes: int) -> int:
    """Round a byte count up to whole kilobytes."""
    return -(-size_bytes // 1024)


def _fixed(value: Decimal, places: int) -> str:
    quantum = Decimal(1).scaleb(-places)
    return str(value.quantize(quantum, rounding=ROUND_HALF_UP))


def format_size(size_kb: int) -> str:
    """Render a kilobyte count for display.

    Below 1024 KB the value is printed verbatim, below 1024 MB with one
    decimal in MB, otherwise with two decimals in GB.
    """
    if size_kb < _KB_PER_MB:
        return f"{size_kb} KB"
    value = Decimal(size_kb)
    if size_kb < _KB_PER_GB:
        return f"{_fixed(value / _KB_PER_MB, 1)} MB"
    return f"{_fixed(value / _KB_PER_GB, 2)} GB"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
