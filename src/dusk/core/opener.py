"""Reveal a path in the desktop file manager."""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from pathlib import Path

from dbus_next import BusType, Message, MessageType
from dbus_next.aio import MessageBus

from dusk.utils import has_command

log = logging.getLogger(__name__)

_FM_BUS_NAME = "org.freedesktop.FileManager1"
_FM_OBJECT_PATH = "/org/freedesktop/FileManager1"


async def _show_items(uri: str) -> bool:
    """Ask the session's file manager to open and select *uri*."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    try:
        reply = await bus.call(
            Message(
                destination=_FM_BUS_NAME,
                path=_FM_OBJECT_PATH,
                interface=_FM_BUS_NAME,
                member="ShowItems",
                signature="ass",
                body=[[uri], ""],
            )
        )
    finally:
        bus.disconnect()
    if reply is None or reply.message_type == MessageType.ERROR:
        log.debug("ShowItems failed for %s: %s", uri, reply.body if reply else "no reply")
        return False
    return True


def reveal_with_dbus(path: Path) -> bool:
    """Use ``org.freedesktop.FileManager1.ShowItems`` to reveal *path*."""
    try:
        return asyncio.run(_show_items(path.as_uri()))
    except Exception as e:
        log.debug("D-Bus file manager unavailable: %s", e)
        return False


def open_with_launcher(path: Path) -> bool:
    """Open the directory containing *path* (or *path* itself) with the desktop launcher."""
    launcher = "open" if sys.platform == "darwin" else "xdg-open"
    if not has_command(launcher):
        log.warning("No %s command available", launcher)
        return False
    target = path if path.is_dir() else path.parent
    try:
        proc = subprocess.run([launcher, str(target)], capture_output=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        log.error("%s failed for %s: %s", launcher, target, e)
        return False
    if proc.returncode != 0:
        log.error("%s exited with status %d for %s", launcher, proc.returncode, target)
        return False
    return True


def open_in_file_manager(path: str | Path) -> bool:
    """Show *path* in the file manager. Returns False if it could not be opened."""
    target = Path(path).expanduser().absolute()
    if not target.exists():
        log.warning("Cannot open missing path: %s", target)
        return False
    if sys.platform != "darwin" and reveal_with_dbus(target):
        return True
    return open_with_launcher(target)
