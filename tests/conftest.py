"""Shared test fixtures."""

from __future__ import annotations

import pytest

import dusk.storage as storage
from dusk.core.prober import Measurement
from dusk.settings import Settings


@pytest.fixture(autouse=True)
def isolate_storage(tmp_path, monkeypatch):
    """Redirect the cache snapshot to a temp directory."""
    data_dir = tmp_path / "dusk_data"
    data_dir.mkdir()
    cache_file = data_dir / "disk_data.json"
    monkeypatch.setattr(storage, "CACHE_FILE", cache_file)
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    return cache_file


@pytest.fixture(autouse=True)
def isolate_settings(tmp_path, monkeypatch):
    """Give every test a fresh settings file."""
    settings = Settings(tmp_path / "dusk_config" / "settings.json")
    monkeypatch.setattr(Settings, "_instance", settings)
    return settings


class FakeProber:
    """Prober returning canned sizes without running ``du``.

    Paths missing from *sizes* are measured as 0 KB files. Paths in *fail*
    raise, standing in for an unexpected error while probing.
    """

    def __init__(self, sizes: dict[str, tuple[int, bool]] | None = None, fail: set[str] | None = None):
        self.sizes = sizes or {}
        self.fail = fail or set()
        self.calls: list[str] = []

    def measure(self, path, on_progress=None):
        self.calls.append(path)
        if path in self.fail:
            raise RuntimeError(f"probe failed for {path}")
        size, is_dir = self.sizes.get(path, (0, False))
        if on_progress:
            on_progress("sub")
        return Measurement(size, is_dir=is_dir)


@pytest.fixture
def make_prober():
    """Factory for FakeProber instances."""
    return FakeProber
