"""Tests for the scan event channel."""

from __future__ import annotations

import queue
import threading

import pytest

from dusk.core.events import ChannelClosed, EventChannel, EventKind, ScanEvent
from dusk.models.scan_result import ScanItem, ScanResult


class TestEventChannel:
    def test_iterates_until_terminal_event(self):
        channel = EventChannel()
        item = ScanItem(name="a", path="/d/a", size_kb=4)
        channel.progress("Scanning: a (1/1)")
        channel.item(item)
        channel.complete(ScanResult(path="/d", total_size_kb=4, children=[item]))

        events = list(channel)

        assert [e.kind for e in events] == [EventKind.PROGRESS, EventKind.ITEM, EventKind.COMPLETE]
        assert events[0].data == {"message": "Scanning: a (1/1)"}
        assert events[1].data["formattedSize"] == "4 KB"
        assert events[2].data["totalSize"] == 4

    def test_nothing_after_terminal_event(self):
        channel = EventChannel()
        assert channel.error("Error: boom") is True
        assert channel.progress("late") is False
        assert channel.complete(ScanResult(path="/d")) is False
        assert channel.closed

        assert [e.kind for e in channel] == [EventKind.ERROR]

    def test_get_after_terminal_raises(self):
        channel = EventChannel()
        channel.error("Error: boom")
        assert channel.get().kind is EventKind.ERROR
        with pytest.raises(ChannelClosed):
            channel.get()

    def test_get_timeout(self):
        with pytest.raises(queue.Empty):
            EventChannel().get(timeout=0.01)

    def test_disconnect_drops_events(self):
        channel = EventChannel()
        channel.disconnect()
        assert channel.disconnected
        assert channel.progress("ignored") is False
        assert channel.complete(ScanResult(path="/d")) is False

    def test_cross_thread_delivery(self):
        channel = EventChannel()

        def produce():
            for i in range(50):
                channel.progress(f"step {i}")
            channel.complete(ScanResult(path="/d"))

        thread = threading.Thread(target=produce)
        thread.start()
        events = list(channel)
        thread.join()

        assert len(events) == 51
        assert events[-1].is_terminal
        assert not any(e.is_terminal for e in events[:-1])


class TestScanEvent:
    def test_to_dict(self):
        event = ScanEvent(EventKind.PROGRESS, {"message": "hi"})
        assert event.to_dict() == {"event": "progress", "data": {"message": "hi"}}
        assert not event.is_terminal


class TestWireFormat:
    def test_result_field_names(self):
        result = ScanResult(
            path="/d",
            total_size_kb=3072,
            children=[ScanItem(name="big", path="/d/big", size_kb=3072, is_dir=True)],
        )
        assert result.to_dict() == {
            "path": "/d",
            "totalSize": 3072,
            "formattedTotalSize": "3.0 MB",
            "children": [
                {"name": "big", "path": "/d/big", "size": 3072, "formattedSize": "3.0 MB", "isDir": True},
            ],
        }
