from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from treesync.file_ops import hash_file


log = logging.getLogger("treesync.equality")


def files_equal(
    source_file: Path,
    destination_file: Path,
    hasher: Callable[[Path], str] = hash_file,
) -> bool:
    """Return True when ``destination_file`` already holds ``source_file``.

    Cheap checks run first: a missing destination, a size mismatch or a source
    that is strictly newer than the destination all mean "not equal" without
    reading any content. Only files that pass those checks are hashed.
    """
    try:
        destination_stat = destination_file.stat()
    except OSError:
        return False

    source_stat = source_file.stat()
    if source_stat.st_size != destination_stat.st_size:
        return False

    if source_stat.st_mtime_ns > destination_stat.st_mtime_ns:
        log.debug("Source is newer than destination: %s", source_file)
        return False

    return hasher(source_file) == hasher(destination_file)
