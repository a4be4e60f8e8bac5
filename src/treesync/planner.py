from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
from typing import Callable, Sequence

from treesync.equality import files_equal
from treesync.errors import TransferError
from treesync.models import CopyItem, FileEntry, SyncPlan


log = logging.getLogger("treesync.planner")


def plan_sync(
    source_entries: Sequence[FileEntry],
    destination_root: Path,
    destination_entries: Sequence[FileEntry],
    delete_enabled: bool,
    parallelism: int = 1,
    equal: Callable[[Path, Path], bool] = files_equal,
) -> SyncPlan:
    """Split the scanned trees into files to copy and files to delete.

    A source file is copied when the destination has no file under the same
    relative key or when ``equal`` reports a difference. The delete-set holds
    destination files whose key is absent from the source scan and is only
    computed when ``delete_enabled`` is set.
    """
    if not source_entries:
        log.warning(
            "No source files to synchronize after applying ignore patterns; check the source path"
        )
    else:
        log.info("Found %d source files", len(source_entries))

    destination_keys = {entry.relative for entry in destination_entries}

    def decide(entry: FileEntry) -> CopyItem | None:
        destination_file = destination_root / entry.relative
        if entry.relative not in destination_keys:
            return CopyItem(source=entry, destination=destination_file)
        try:
            if equal(entry.path, destination_file):
                log.debug("Skipping unchanged file: %s", entry.relative)
                return None
        except OSError as exc:
            raise TransferError(entry.path, "compare", exc) from exc
        return CopyItem(source=entry, destination=destination_file)

    with ThreadPoolExecutor(max_workers=max(1, parallelism)) as pool:
        decisions = list(pool.map(decide, source_entries))

    copy_set = tuple(item for item in decisions if item is not None)

    delete_set: tuple[FileEntry, ...] = ()
    if delete_enabled:
        source_keys = {entry.relative for entry in source_entries}
        delete_set = tuple(entry for entry in destination_entries if entry.relative not in source_keys)

    log.info(
        "Plan: %d to copy, %d unchanged, %d to delete",
        len(copy_set),
        len(source_entries) - len(copy_set),
        len(delete_set),
    )
    return SyncPlan(
        copy_set=copy_set,
        delete_set=delete_set,
        source_count=len(source_entries),
        unchanged=len(source_entries) - len(copy_set),
    )
