"""Dusk data models."""

from dusk.models.scan_result import ScanItem, ScanResult

__all__ = [
    "ScanItem",
    "ScanResult",
]
