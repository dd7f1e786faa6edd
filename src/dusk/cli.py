"""CLI interface for Dusk."""

from __future__ import annotations

import json
import logging
import os
import sys
import time

import click

from dusk.core.engine import build_engine
from dusk.core.events import EventKind
from dusk.core.opener import open_in_file_manager
from dusk.settings import DEFAULTS, Settings
from dusk.utils import format_elapsed, format_size, normalize_path


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """Dusk: cached disk usage of a directory's immediate children."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("path", default="/")
@click.option("--force", "-f", is_flag=True, help="Re-measure immediate children, bypassing the cache")
@click.option("--workers", "-w", type=click.IntRange(min=1), default=None, help="Concurrent measurements")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(path: str, force: bool, workers: int | None, as_json: bool) -> None:
    """Show the size of every entry directly inside PATH."""
    engine = build_engine(workers=workers)
    target = os.path.expanduser(path)
    show_progress = not as_json and sys.stderr.isatty()

    start = time.monotonic()
    for event in engine.scan(target, force=force):
        match event.kind:
            case EventKind.PROGRESS:
                if show_progress:
                    click.echo(f"\r\033[K{event.data['message']}", nl=False, err=True)
            case EventKind.ITEM:
                pass
            case EventKind.ERROR:
                if show_progress:
                    click.echo("\r\033[K", nl=False, err=True)
                if as_json:
                    click.echo(json.dumps({"error": event.data["message"]}))
                else:
                    click.echo(click.style(event.data["message"], fg="red"), err=True)
                sys.exit(1)
            case EventKind.COMPLETE:
                if show_progress:
                    click.echo("\r\033[K", nl=False, err=True)
                if as_json:
                    click.echo(json.dumps(event.data, indent=2))
                else:
                    _print_result(event.data, time.monotonic() - start)


def _print_result(data: dict, elapsed: float) -> None:
    click.echo(f"\n  {click.style(data['path'], fg='cyan', bold=True)}\n")
    if not data["children"]:
        click.echo("  (empty)")
    for child in data["children"]:
        name = child["name"] + ("/" if child["isDir"] else "")
        color = "blue" if child["isDir"] else None
        click.echo(f"  {child['formattedSize']:>10s}  {click.style(name, fg=color)}")
    click.echo(
        f"\nTotal: {click.style(data['formattedTotalSize'], fg='green', bold=True)}"
        f" ({len(data['children']):,} items, {format_elapsed(elapsed)})\n"
    )


# ── cache ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--prefix", "-p", default=None, help="Only show paths under this directory")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def cache(prefix: str | None, as_json: bool) -> None:
    """Show cached directory sizes."""
    snapshot = build_engine().cache_snapshot()
    if prefix:
        root = normalize_path(os.path.expanduser(prefix))
        under = root.rstrip(os.sep) + os.sep
        snapshot = {k: v for k, v in snapshot.items() if k == root or k.startswith(under)}

    if as_json:
        click.echo(json.dumps(snapshot, indent=2))
        return

    if not snapshot:
        click.echo("Cache is empty.")
        return
    for path, size in sorted(snapshot.items()):
        click.echo(f"  {format_size(size):>10s}  {path}")


# ── open ─────────────────────────────────────────────────────────────────

@main.command("open")
@click.argument("path")
def open_cmd(path: str) -> None:
    """Reveal PATH in the file manager."""
    if not open_in_file_manager(path):
        click.echo(f"Could not open '{path}'.", err=True)
        sys.exit(1)
    click.echo("Opened")


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Read and change settings."""


@config.command("get")
@click.argument("key", required=False)
def config_get(key: str | None) -> None:
    """Print one setting, or every known setting."""
    settings = Settings.instance()
    keys = [key] if key else sorted(DEFAULTS)
    for k in keys:
        click.echo(f"{k} = {json.dumps(settings.get(k))}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE (parsed as JSON, else kept as a string)."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    Settings.instance().set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from dusk.dbus_service import start_service

    click.echo("Starting Dusk D-Bus service...")
    start_service()
