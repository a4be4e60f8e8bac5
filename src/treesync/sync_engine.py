from __future__ import annotations

from contextlib import contextmanager, nullcontext
import logging
from pathlib import Path
from typing import Iterator

from rich.filesize import decimal

from treesync.config import SyncRequest
from treesync.errors import ConfigurationError
from treesync.executor import ParallelExecutor
from treesync.file_ops import LocalFileOps
from treesync.ignore_engine import PathMatcher, build_path_matcher
from treesync.models import PhaseStats, SyncResult
from treesync.planner import plan_sync
from treesync.progress import ProgressReporter, RichProgressDisplay
from treesync.scanner import scan_tree


log = logging.getLogger("treesync.engine")


def _validate_paths(source_root: Path, destination_root: Path) -> None:
    if source_root == destination_root:
        raise ConfigurationError(f"Invalid mapping: source and destination are equal: {source_root}")

    if destination_root.is_relative_to(source_root):
        raise ConfigurationError(
            f"Invalid mapping: destination is inside source, which can recurse: {destination_root}"
        )

    if source_root.is_relative_to(destination_root):
        raise ConfigurationError(
            f"Invalid mapping: source is inside destination: {source_root}"
        )


def validate_request(request: SyncRequest) -> SyncRequest:
    normalized = request.normalized()
    if not normalized.source.exists() or not normalized.source.is_dir():
        raise ConfigurationError(f"Source directory does not exist or is not a directory: {request.source}")
    if normalized.destination.exists() and not normalized.destination.is_dir():
        raise ConfigurationError(f"Destination exists and is not a directory: {request.destination}")
    _validate_paths(normalized.source, normalized.destination)
    return normalized


def prepare_destination(request: SyncRequest) -> None:
    destination = request.destination.expanduser()
    if destination.exists():
        return
    if request.dry_run:
        log.info("Destination does not exist and would be created: %s", destination)
        return
    log.info("Creating destination directory: %s", destination)
    destination.mkdir(parents=True, exist_ok=True)


@contextmanager
def _phase_reporter(
    display: RichProgressDisplay | None, name: str, total_bytes: int, total_items: int
) -> Iterator[ProgressReporter]:
    listener_cm = display.phase(name, total_bytes, total_items) if display is not None else nullcontext(None)
    with listener_cm as listener:
        yield ProgressReporter(total_bytes=total_bytes, total_items=total_items, listener=listener)


def _log_phase(stats: PhaseStats, verb: str) -> None:
    log.info(
        "%s %d files (%s) in %.2fs. Avg speed: %s/s",
        verb,
        stats.items,
        decimal(stats.bytes),
        stats.elapsed,
        decimal(int(stats.throughput)),
    )


def synchronize(
    request: SyncRequest,
    display: RichProgressDisplay | None = None,
    file_ops: LocalFileOps | None = None,
    matcher: PathMatcher | None = None,
) -> SyncResult:
    """Make ``request.destination`` match ``request.source``.

    Runs scan, plan, copy phase and, when deletion is enabled, the delete
    phase strictly after the copy phase. The first failing copy or delete
    aborts its phase and is raised as ``TransferError``. A ``matcher`` already
    built from ``request.ignore_patterns`` may be passed in.
    """
    request = validate_request(request)
    if matcher is None:
        matcher = build_path_matcher(request.ignore_patterns)

    log.info("Synchronizing from %s to %s", request.source, request.destination)
    if request.dry_run:
        log.info("Dry run mode: no files will be modified")

    source_entries = scan_tree(request.source, matcher)
    destination_entries = scan_tree(request.destination) if request.destination.exists() else []

    plan = plan_sync(
        source_entries,
        request.destination,
        destination_entries,
        delete_enabled=request.delete_extraneous,
        parallelism=request.parallelism,
    )

    executor = ParallelExecutor(request.parallelism, dry_run=request.dry_run, file_ops=file_ops)

    copy_stats = PhaseStats(name="copy")
    if not plan.copy_set:
        log.info("Destination is up to date, nothing to copy")
    else:
        with _phase_reporter(display, "Copying", plan.copy_bytes, len(plan.copy_set)) as reporter:
            copy_stats = executor.run_copy_phase(plan.copy_set, reporter)
        _log_phase(copy_stats, "Would copy" if request.dry_run else "Copied")

    delete_stats = PhaseStats(name="delete")
    if request.delete_extraneous:
        if not plan.delete_set:
            log.info("No files to delete")
        else:
            with _phase_reporter(display, "Deleting", plan.delete_bytes, len(plan.delete_set)) as reporter:
                delete_stats = executor.run_delete_phase(plan.delete_set, reporter)
            _log_phase(delete_stats, "Would delete" if request.dry_run else "Deleted")

    return SyncResult(plan=plan, copy=copy_stats, delete=delete_stats, dry_run=request.dry_run)
