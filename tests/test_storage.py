"""Tests for the snapshot file storage."""

from __future__ import annotations

import json
import os
import stat

from dusk import storage


class TestStorage:
    def test_load_missing_returns_empty(self, isolate_storage):
        assert storage.load_cache() == {}

    def test_load_corrupt_returns_empty(self, isolate_storage):
        isolate_storage.write_text("{not json")
        assert storage.load_cache() == {}

    def test_load_non_object_returns_empty(self, isolate_storage):
        isolate_storage.write_text("[1, 2]")
        assert storage.load_cache() == {}

    def test_save_writes_indented_json(self, isolate_storage):
        assert storage.save_cache({"/a": 1}) is True
        assert isolate_storage.read_text() == json.dumps({"/a": 1}, indent=2)

    def test_save_replaces_whole_file(self, isolate_storage):
        storage.save_cache({"/a": 1, "/b": 2})
        storage.save_cache({"/a": 5})
        assert json.loads(isolate_storage.read_text()) == {"/a": 5}
        leftovers = [p.name for p in isolate_storage.parent.iterdir() if p != isolate_storage]
        assert leftovers == []

    def test_save_failure_is_reported_not_raised(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        assert storage.save_cache({"/a": 1}, blocker / "cache.json") is False

    def test_new_file_gets_umask_mode(self, isolate_storage):
        old = os.umask(0o022)
        try:
            storage.save_cache({"/a": 1})
        finally:
            os.umask(old)
        assert stat.S_IMODE(isolate_storage.stat().st_mode) == 0o644

    def test_rewrite_keeps_existing_mode(self, isolate_storage):
        isolate_storage.write_text("{}")
        isolate_storage.chmod(0o640)

        storage.save_cache({"/a": 1})

        assert stat.S_IMODE(isolate_storage.stat().st_mode) == 0o640
        assert json.loads(isolate_storage.read_text()) == {"/a": 1}
