"""Persistent path -> size cache with ancestor delta propagation."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterator

from dusk import storage

log = logging.getLogger(__name__)


def _ancestors(path: str) -> Iterator[str]:
    """Yield parent, grandparent, ... up to and including the filesystem root."""
    current = path
    while True:
        parent = os.path.dirname(current)
        if parent == current:
            return
        yield parent
        current = parent


def _flatten(key: str, value: Any) -> int | None:
    """Coerce one raw snapshot value to a bare size, or None to drop it."""
    if isinstance(value, dict):
        value = value.get("totalSize")
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    log.warning("Dropping unusable cache entry for %s: %r", key, value)
    return None


class PathSizeCache:
    """Maps normalized absolute paths to their last known size in KB.

    All access goes through ``get``/``put``/``propagate_delta`` under one
    lock, so a single instance can be shared by every worker of every scan.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._entries: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | None = None) -> PathSizeCache:
        """Create a cache backed by *path*, loading any existing snapshot.

        A legacy snapshot is flattened and written back immediately.
        """
        cache = cls(path)
        if cache.load(storage.load_cache(path)):
            log.info("Migrated cache to flat format (%d entries)", len(cache))
            cache.save()
        return cache

    def get(self, path: str) -> int | None:
        with self._lock:
            return self._entries.get(path)

    def put(self, path: str, size_kb: int) -> None:
        with self._lock:
            self._entries[path] = size_kb

    def propagate_delta(self, from_path: str, delta: int) -> list[str]:
        """Add *delta* to every cached ancestor of *from_path*.

        Ancestors that are not cached are skipped, never created.

        Returns:
            The ancestors that were updated, nearest first.
        """
        if not delta:
            return []
        with self._lock:
            return self._propagate(from_path, delta)

    def update_total(self, path: str, size_kb: int, propagate: bool = False) -> int:
        """Store *size_kb* for *path* and return the change from its previous value.

        With *propagate*, the change is also added to every cached ancestor.
        The swap and the propagation happen under one lock acquisition, so
        overlapping refreshes of the same path each apply only their own
        difference.
        """
        with self._lock:
            delta = size_kb - self._entries.get(path, 0)
            self._entries[path] = size_kb
            if propagate and delta:
                self._propagate(path, delta)
        return delta

    def _propagate(self, from_path: str, delta: int) -> list[str]:
        updated: list[str] = []
        for ancestor in _ancestors(from_path):
            if ancestor in self._entries:
                self._entries[ancestor] += delta
                updated.append(ancestor)
        log.debug("Propagated %+d KB from %s to %d ancestors", delta, from_path, len(updated))
        return updated

    def snapshot(self) -> dict[str, int]:
        """Return a copy of the full mapping."""
        with self._lock:
            return dict(self._entries)

    def load(self, raw: dict[str, Any]) -> bool:
        """Install entries from a raw snapshot, replacing the current ones.

        Values stored as records (the legacy format) are flattened to their
        ``totalSize``.

        Returns:
            True if any legacy record was flattened.
        """
        migrated = False
        entries: dict[str, int] = {}
        for key, value in raw.items():
            if isinstance(value, dict):
                migrated = True
            size = _flatten(key, value)
            if size is not None:
                entries[key] = size
        with self._lock:
            self._entries = entries
        return migrated

    def save(self) -> bool:
        """Write the whole mapping to the snapshot file."""
        return storage.save_cache(self.snapshot(), self._path)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
