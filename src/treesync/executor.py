from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
import time
from typing import Callable, Sequence, TypeVar

from treesync.errors import TransferError
from treesync.file_ops import LocalFileOps
from treesync.models import CopyItem, FileEntry, PhaseStats
from treesync.progress import ProgressReporter


log = logging.getLogger("treesync.executor")

_Item = TypeVar("_Item")


class ParallelExecutor:
    """Runs the copy-set or the delete-set over a bounded pool of worker threads.

    The first failing item stops the phase: items that have not started yet
    are skipped, items already running finish, and the first failure is
    raised as :class:`TransferError` once the pool has drained.
    """

    def __init__(self, parallelism: int, dry_run: bool = False, file_ops: LocalFileOps | None = None) -> None:
        self.parallelism = max(1, int(parallelism))
        self.dry_run = dry_run
        self.file_ops = file_ops or LocalFileOps()

    def run_copy_phase(self, copy_set: Sequence[CopyItem], reporter: ProgressReporter) -> PhaseStats:
        return self._run_phase("copy", copy_set, self._copy_one, reporter)

    def run_delete_phase(self, delete_set: Sequence[FileEntry], reporter: ProgressReporter) -> PhaseStats:
        return self._run_phase("delete", delete_set, self._delete_one, reporter)

    def _copy_one(self, item: CopyItem) -> tuple[int, str]:
        if self.dry_run:
            log.info("Would copy: %s -> %s", item.source.path, item.destination)
        else:
            log.debug("Copying: %s -> %s", item.source.path, item.destination)
            try:
                self.file_ops.copy_file(item.source.path, item.destination)
            except OSError as exc:
                raise TransferError(item.source.path, "copy", exc) from exc
        return item.source.size, item.source.relative

    def _delete_one(self, entry: FileEntry) -> tuple[int, str]:
        if self.dry_run:
            log.info("Would delete: %s", entry.path)
        else:
            log.debug("Deleting: %s", entry.path)
            try:
                self.file_ops.delete_path(entry.path)
            except OSError as exc:
                raise TransferError(entry.path, "delete", exc) from exc
        return entry.size, entry.relative

    def _run_phase(
        self,
        name: str,
        items: Sequence[_Item],
        work: Callable[[_Item], tuple[int, str]],
        reporter: ProgressReporter,
    ) -> PhaseStats:
        stats = PhaseStats(name=name)
        if not items:
            return stats

        abort = threading.Event()
        failures: list[TransferError] = []
        failures_lock = threading.Lock()
        started = time.monotonic()

        def run_item(item: _Item) -> None:
            if abort.is_set():
                return
            try:
                nbytes, label = work(item)
            except TransferError as exc:
                with failures_lock:
                    failures.append(exc)
                abort.set()
                return
            except Exception:
                abort.set()
                raise
            reporter.advance(nbytes, label=label)

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix=f"treesync-{name}") as pool:
            futures = [pool.submit(run_item, item) for item in items]
        for future in futures:
            future.result()

        snapshot = reporter.snapshot()
        stats.items = snapshot.processed_items
        stats.bytes = snapshot.processed_bytes
        stats.elapsed = time.monotonic() - started

        if failures:
            first = failures[0]
            log.error("Aborting %s phase after %d item(s): %s", name, stats.items, first)
            raise first
        return stats
