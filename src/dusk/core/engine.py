"""Scan orchestration engine."""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from dusk.core.cache import PathSizeCache
from dusk.core.events import EventChannel
from dusk.core.prober import SizeProber
from dusk.models.scan_result import ScanItem, ScanResult
from dusk.settings import DEFAULTS, Settings

log = logging.getLogger(__name__)


def _is_dir(path: str) -> bool:
    try:
        return stat.S_ISDIR(os.lstat(path).st_mode)
    except OSError:
        return False


def _list_dir(path: str) -> list[str] | None:
    """List a directory's entries, or None if *path* is not a readable directory."""
    if not _is_dir(path):
        return None
    try:
        return sorted(os.listdir(path))
    except OSError:
        return None


class _ScanState:
    """Shared bookkeeping for the workers of one scan."""

    def __init__(self, path: str, names: list[str], channel: EventChannel) -> None:
        self.path = path
        self.channel = channel
        self.total_items = len(names)
        self.pending = deque(names)
        self.items: list[ScanItem] = []
        self.processed = 0
        self.lock = threading.Lock()

    def next_name(self) -> str | None:
        with self.lock:
            return self.pending.popleft() if self.pending else None

    def counter(self) -> str:
        with self.lock:
            return f"({self.processed + 1}/{self.total_items})"

    def finish(self, item: ScanItem) -> None:
        with self.lock:
            self.items.append(item)
            self.processed += 1
        self.channel.item(item)


class ScanEngine:
    """Computes the sizes of a directory's immediate children.

    Children already in the cache are trusted unless the scan is forced.
    Others are measured one level deep: a child directory is summed from
    its own children, each taken from the cache or probed individually.
    """

    def __init__(self, cache: PathSizeCache, prober: SizeProber, workers: int = 1) -> None:
        self.cache = cache
        self.prober = prober
        self.workers = max(1, workers)

    def scan(self, path: str, force: bool = False) -> EventChannel:
        """Start scanning *path* in the background and return its event channel."""
        channel = EventChannel()
        thread = threading.Thread(
            target=self._run_guarded,
            args=(path, force, channel),
            name=f"dusk-scan:{path}",
            daemon=True,
        )
        thread.start()
        return channel

    def _run_guarded(self, path: str, force: bool, channel: EventChannel) -> None:
        try:
            self.run(path, force, channel)
        except Exception as e:
            log.exception("Scan of %s crashed", path)
            channel.error(f"Error: {e}")

    def run(self, path: str, force: bool = False, channel: EventChannel | None = None) -> ScanResult | None:
        """Scan *path* synchronously, publishing events to *channel*.

        Returns:
            The scan result, or None if *path* could not be listed.
        """
        channel = channel or EventChannel()
        # The target is listed through any symlink, so key it by its real location.
        scan_path = os.path.realpath(path)
        log.info("Scanning %s%s", scan_path, " [force refresh]" if force else "")

        try:
            names = sorted(os.listdir(scan_path))
        except OSError as e:
            log.error("Cannot list %s: %s", scan_path, e)
            channel.error(f"Error: {e.strerror or e}: {scan_path}")
            return None

        state = _ScanState(scan_path, names, channel)

        if self.workers == 1 or len(names) < 2:
            self._worker(state, force)
        else:
            pool_size = min(self.workers, len(names))
            with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="dusk-worker") as executor:
                futures = [executor.submit(self._worker, state, force) for _ in range(pool_size)]
                for future in futures:
                    future.result()

        state.items.sort(key=lambda item: item.size_kb, reverse=True)
        total = sum(item.size_kb for item in state.items)
        result = ScanResult(path=scan_path, total_size_kb=total, children=state.items)

        delta = self.cache.update_total(scan_path, total, propagate=force)
        if force and delta:
            log.info("Propagated size diff: %+d KB starting from parent of %s", delta, scan_path)
        self.cache.save()

        channel.complete(result)
        return result

    def cache_snapshot(self) -> dict[str, int]:
        """Return every cached path and its size."""
        return self.cache.snapshot()

    def _worker(self, state: _ScanState, force: bool) -> None:
        """Drain the shared queue of child names."""
        while (name := state.next_name()) is not None:
            child_path = os.path.join(state.path, name)
            try:
                item = self._process_child(state, name, child_path, force)
            except Exception:
                log.exception("Failed to measure %s", child_path)
                item = ScanItem(name=name, path=child_path, size_kb=0)
            state.finish(item)

    def _process_child(self, state: _ScanState, name: str, child_path: str, force: bool) -> ScanItem:
        channel = state.channel
        channel.progress(f"Scanning: {name} {state.counter()}")

        cached = None if force else self.cache.get(child_path)
        if cached is not None:
            return ScanItem(name=name, path=child_path, size_kb=cached, is_dir=_is_dir(child_path))

        grandchildren = _list_dir(child_path)
        if grandchildren:
            size = self._sum_grandchildren(state, name, child_path, grandchildren, force)
            self.cache.put(child_path, size)
            return ScanItem(name=name, path=child_path, size_kb=size, is_dir=True)

        measurement = self.prober.measure(
            child_path,
            on_progress=lambda rel: channel.progress(f"Scanning: {os.path.join(name, rel)} {state.counter()}"),
        )
        if measurement.is_dir and measurement.ok:
            self.cache.put(child_path, measurement.size_kb)
        return ScanItem(name=name, path=child_path, size_kb=measurement.size_kb, is_dir=measurement.is_dir)

    def _sum_grandchildren(
        self,
        state: _ScanState,
        name: str,
        child_path: str,
        grandchildren: list[str],
        force: bool,
    ) -> int:
        channel = state.channel
        size = 0
        for grandchild in grandchildren:
            grandchild_path = os.path.join(child_path, grandchild)
            display = os.path.join(name, grandchild)
            channel.progress(f"Scanning: {display} {state.counter()}")

            cached = None if force else self.cache.get(grandchild_path)
            if cached is not None:
                size += cached
                continue
            measurement = self.prober.measure(
                grandchild_path,
                on_progress=lambda rel, display=display: channel.progress(
                    f"Scanning: {os.path.join(display, rel)} {state.counter()}"
                ),
            )
            size += measurement.size_kb
            if measurement.is_dir and measurement.ok:
                self.cache.put(grandchild_path, measurement.size_kb)
        return size


def _setting(settings: Settings, key: str, convert, minimum):
    """Read a numeric setting, falling back to its default when it is unusable."""
    raw = settings.get(key)
    try:
        value = convert(raw)
    except (TypeError, ValueError, OverflowError):
        value = None
    if value is None or value < minimum or isinstance(raw, bool):
        log.warning("Ignoring invalid %s setting %r, using %r", key, raw, DEFAULTS[key])
        return DEFAULTS[key]
    return value


def build_engine(settings: Settings | None = None, workers: int | None = None) -> ScanEngine:
    """Create an engine wired to the persistent cache and the configured prober."""
    settings = settings or Settings.instance()
    cache_file = settings.get("cache.file")
    if cache_file is not None and not isinstance(cache_file, str):
        log.warning("Ignoring invalid cache.file setting %r", cache_file)
        cache_file = None
    cache = PathSizeCache.open(Path(cache_file).expanduser() if cache_file else None)
    prober = SizeProber(
        command=settings.get("probe.command") or DEFAULTS["probe.command"],
        progress_interval=_setting(settings, "probe.progress_interval", float, 0),
    )
    if workers is None:
        workers = _setting(settings, "scan.workers", int, 1)
    return ScanEngine(cache, prober, workers=workers)
