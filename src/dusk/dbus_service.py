"""D-Bus service exposing the scan pipeline.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "(ss)" are D-Bus protocol types, not Python syntax.
"""

from __future__ import annotations

import asyncio
import json
import logging

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from dusk.core.engine import ScanEngine, build_engine
from dusk.core.events import EventKind
from dusk.core.opener import open_in_file_manager

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.dusk"
_OBJECT_PATH = "/io/github/dusk"
_INTERFACE = "io.github.dusk.Analyzer"


# noinspection PyPep8Naming
class DuskDBusService(ServiceInterface):
    """D-Bus service interface for Dusk."""

    def __init__(self, engine: ScanEngine | None = None) -> None:
        super().__init__(_INTERFACE)
        self._engine = engine or build_engine()

    @method()
    async def Scan(self, path: "s", force: "b") -> "s":  # type: ignore[override]
        """Scan a directory, emitting progress and item signals.

        Returns the completed scan as JSON, or ``{"error": ...}``.
        """
        loop = asyncio.get_running_loop()
        channel = self._engine.scan(path, force)
        while True:
            event = await loop.run_in_executor(None, channel.get)
            match event.kind:
                case EventKind.PROGRESS:
                    self.ScanProgress(path, event.data["message"])
                case EventKind.ITEM:
                    self.ScanItem(path, json.dumps(event.data))
                case EventKind.ERROR:
                    self.ScanError(path, event.data["message"])
                    return json.dumps({"error": event.data["message"]})
                case EventKind.COMPLETE:
                    return json.dumps(event.data)

    @method()
    def GetCache(self) -> "s":  # type: ignore[override]
        """Return the full path -> size mapping as JSON."""
        return json.dumps(self._engine.cache_snapshot())

    @method()
    def Open(self, path: "s") -> "b":  # type: ignore[override]
        """Reveal a path in the file manager."""
        return open_in_file_manager(path)

    @signal()
    def ScanProgress(self, path: str, message: str) -> "(ss)":  # type: ignore[override]
        return [path, message]

    @signal()
    def ScanItem(self, path: str, item_json: str) -> "(ss)":  # type: ignore[override]
        return [path, item_json]

    @signal()
    def ScanError(self, path: str, message: str) -> "(ss)":  # type: ignore[override]
        return [path, message]


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = DuskDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    await bus.wait_for_disconnect()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
