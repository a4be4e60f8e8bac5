from __future__ import annotations

from pathlib import Path, PurePosixPath
import logging
import os
import stat

from treesync.ignore_engine import PathMatcher
from treesync.models import FileEntry


log = logging.getLogger("treesync.scanner")

_DirKey = tuple[int, int]


def _log_walk_error(exc: OSError) -> None:
    log.warning("Skipping unreadable directory %s: %s", exc.filename, exc.strerror or exc)


def _relative_dir(current: Path, root: Path) -> PurePosixPath:
    if current == root:
        return PurePosixPath(".")
    return PurePosixPath(current.relative_to(root).as_posix())


def scan_tree(root: Path, matcher: PathMatcher | None = None) -> list[FileEntry]:
    """Walk ``root`` following symlinks and return every regular file below it.

    Files whose relative path matches ``matcher`` are skipped. Directories are
    always walked, so the files kept are exactly those ``matcher`` does not match.
    Entries that cannot be read are logged and skipped; the walk never fails on
    a single bad entry. A symlinked directory that points back at one of its
    own ancestors is not descended into.
    """
    root = Path(root)
    entries: list[FileEntry] = []
    lineage_by_dir: dict[str, frozenset[_DirKey]] = {}

    try:
        root_stat = root.stat()
    except OSError as exc:
        log.warning("Cannot read tree root %s: %s", root, exc)
        return entries
    lineage_by_dir[os.fspath(root)] = frozenset({(root_stat.st_dev, root_stat.st_ino)})

    for root_str, dirs, files in os.walk(root, topdown=True, onerror=_log_walk_error, followlinks=True):
        current = Path(root_str)
        rel_dir = _relative_dir(current, root)
        lineage = lineage_by_dir.pop(root_str, frozenset())

        kept_dirs: list[str] = []
        for dir_name in dirs:
            rel_path = rel_dir / dir_name
            try:
                dir_stat = (current / dir_name).stat()
            except OSError as exc:
                log.warning("Skipping unreadable directory %s: %s", rel_path, exc)
                continue
            key = (dir_stat.st_dev, dir_stat.st_ino)
            if key in lineage:
                log.warning("Skipping symlink cycle at %s", rel_path)
                continue
            lineage_by_dir[os.path.join(root_str, dir_name)] = lineage | {key}
            kept_dirs.append(dir_name)
        dirs[:] = kept_dirs

        for file_name in files:
            rel_path = rel_dir / file_name
            if matcher is not None and matcher.matches(rel_path):
                log.debug("Ignoring file: %s", rel_path)
                continue

            full_path = current / file_name
            try:
                file_stat = full_path.stat()
            except OSError as exc:
                log.warning("Skipping unreadable file %s: %s", rel_path, exc)
                continue
            if not stat.S_ISREG(file_stat.st_mode):
                log.debug("Skipping non-regular file: %s", rel_path)
                continue

            entries.append(
                FileEntry(
                    path=full_path,
                    relative=rel_path.as_posix(),
                    size=file_stat.st_size,
                    mtime_ns=file_stat.st_mtime_ns,
                )
            )

    return entries
