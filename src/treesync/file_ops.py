from __future__ import annotations

from hashlib import sha256
import logging
from pathlib import Path
import shutil
import tempfile


HASH_CHUNK_SIZE = 1024 * 1024

log = logging.getLogger("treesync.file_ops")


def hash_file(path: Path) -> str:
    digest = sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class LocalFileOps:
    """Filesystem mutations used by the executor."""

    def copy_file(self, source_file: Path, destination_file: Path) -> None:
        destination_file.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(delete=False, dir=str(destination_file.parent)) as tmp:
            tmp_path = Path(tmp.name)
        try:
            # copy2 carries the source mtime over to the destination.
            shutil.copy2(source_file, tmp_path)
            tmp_path.replace(destination_file)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def delete_path(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            log.warning("Removing directory found in place of a file: %s", path)
            shutil.rmtree(path)
            return
        try:
            path.unlink()
        except (FileNotFoundError, NotADirectoryError):
            log.debug("Already gone: %s", path)
