"""Tests for the settings store."""

from __future__ import annotations

import json

from dusk.settings import Settings


class TestSettings:
    def test_defaults(self, tmp_path):
        settings = Settings(tmp_path / "s.json")
        assert settings.get("scan.workers") == 1
        assert settings.get("probe.command") == "du"
        assert settings.get("probe.progress_interval") == 0.1
        assert settings.get("cache.file") is None
        assert settings.get("unknown.key", "fallback") == "fallback"

    def test_set_persists_nested(self, tmp_path):
        path = tmp_path / "s.json"
        Settings(path).set("scan.workers", 4)

        assert json.loads(path.read_text()) == {"scan": {"workers": 4}}
        assert Settings(path).get("scan.workers") == 4

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("{broken")
        assert Settings(path).get("scan.workers") == 1

    def test_instance_is_singleton(self, isolate_settings):
        assert Settings.instance() is isolate_settings
        assert Settings.instance() is Settings.instance()

    def test_non_object_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("[1, 2]")

        settings = Settings(path)
        assert settings.get("scan.workers") == 1

        settings.set("scan.workers", 2)
        assert Settings(path).get("scan.workers") == 2
