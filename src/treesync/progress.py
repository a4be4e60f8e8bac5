from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import threading
import time
from typing import Callable, Iterator

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    processed_bytes: int
    processed_items: int
    total_bytes: int
    total_items: int
    elapsed: float
    throughput: float
    eta: float | None

    @property
    def percent(self) -> float:
        if self.total_bytes > 0:
            return min(100.0, 100.0 * self.processed_bytes / self.total_bytes)
        if self.total_items > 0:
            return min(100.0, 100.0 * self.processed_items / self.total_items)
        return 100.0


ProgressListener = Callable[[ProgressSnapshot, str], None]


class ProgressReporter:
    """Byte and item counters for one phase, safe to advance from worker threads."""

    def __init__(
        self,
        total_bytes: int = 0,
        total_items: int = 0,
        listener: ProgressListener | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_bytes = total_bytes
        self.total_items = total_items
        self._listener = listener
        self._clock = clock
        self._lock = threading.Lock()
        self._processed_bytes = 0
        self._processed_items = 0
        self._started_at = clock()

    def advance(self, nbytes: int, items: int = 1, label: str = "") -> None:
        with self._lock:
            self._processed_bytes += nbytes
            self._processed_items += items
            if self._listener is not None:
                self._listener(self._snapshot_locked(), label)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> ProgressSnapshot:
        elapsed = max(0.0, self._clock() - self._started_at)
        processed = self._processed_bytes
        throughput = processed / elapsed if elapsed > 0 else float(processed)
        remaining = max(0, self.total_bytes - processed)
        if remaining == 0:
            eta: float | None = 0.0
        elif throughput > 0:
            eta = remaining / throughput
        else:
            eta = None
        return ProgressSnapshot(
            processed_bytes=processed,
            processed_items=self._processed_items,
            total_bytes=self.total_bytes,
            total_items=self.total_items,
            elapsed=elapsed,
            throughput=throughput,
            eta=eta,
        )


class RichProgressDisplay:
    """Renders phase progress as a rich progress bar on stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self._lock = threading.Lock()

    @contextmanager
    def phase(self, name: str, total_bytes: int, total_items: int) -> Iterator[ProgressListener]:
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(bar_width=40),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=False,
        ) as progress:
            task_id = progress.add_task(f"{name} 0/{total_items}", total=max(total_bytes, 1))

            def listener(snapshot: ProgressSnapshot, label: str) -> None:
                description = f"{name} {snapshot.processed_items}/{snapshot.total_items}"
                if label:
                    description = f"{description}  {label}"
                with self._lock:
                    progress.update(task_id, completed=snapshot.processed_bytes, description=description)

            yield listener
            with self._lock:
                progress.update(task_id, completed=max(total_bytes, 1), description=f"{name} done")
