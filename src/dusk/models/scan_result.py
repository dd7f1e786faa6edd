"""Scan item and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dusk.utils import format_size


@dataclass(slots=True)
class ScanItem:
    """Size of one immediate child of a scanned directory."""

    name: str
    path: str
    size_kb: int
    is_dir: bool = False

    @property
    def formatted_size(self) -> str:
        return format_size(self.size_kb)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size_kb,
            "formattedSize": self.formatted_size,
            "isDir": self.is_dir,
        }


@dataclass(slots=True)
class ScanResult:
    """Terminal payload of a scan: the directory total and its children.

    ``children`` is ordered by descending size.
    """

    path: str
    total_size_kb: int = 0
    children: list[ScanItem] = field(default_factory=list)

    @property
    def formatted_total_size(self) -> str:
        return format_size(self.total_size_kb)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "totalSize": self.total_size_kb,
            "formattedTotalSize": self.formatted_total_size,
            "children": [child.to_dict() for child in self.children],
        }
