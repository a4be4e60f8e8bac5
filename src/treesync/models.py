from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FileEntry:
    path: Path
    relative: str
    size: int
    mtime_ns: int


@dataclass(frozen=True, slots=True)
class CopyItem:
    source: FileEntry
    destination: Path


@dataclass(frozen=True, slots=True)
class SyncPlan:
    copy_set: tuple[CopyItem, ...] = ()
    delete_set: tuple[FileEntry, ...] = ()
    source_count: int = 0
    unchanged: int = 0

    @property
    def copy_bytes(self) -> int:
        return sum(item.source.size for item in self.copy_set)

    @property
    def delete_bytes(self) -> int:
        return sum(entry.size for entry in self.delete_set)


@dataclass(slots=True)
class PhaseStats:
    name: str
    items: int = 0
    bytes: int = 0
    elapsed: float = 0.0

    @property
    def throughput(self) -> float:
        if self.elapsed <= 0:
            return float(self.bytes)
        return self.bytes / self.elapsed


@dataclass(slots=True)
class SyncResult:
    plan: SyncPlan
    copy: PhaseStats
    delete: PhaseStats
    dry_run: bool = False
