from __future__ import annotations

from pathlib import Path, PurePath
import logging
import re
from typing import Iterable

import pathspec

from treesync.errors import InvalidPatternError


log = logging.getLogger("treesync.ignore")


def read_ignore_file(path: Path) -> list[str]:
    """Read patterns from an ignore file, one per line; ``#`` lines are comments."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        log.warning("Ignore file not found: %s", path)
        return []
    return [line for line in lines if line.strip() and not line.lstrip().startswith("#")]


def _to_gitwildmatch(pattern: str) -> str:
    # A leading "!" or "#" is a literal character here, not negation or a comment.
    if pattern.startswith(("!", "#")):
        return f"\\{pattern}"
    return pattern


def _compile(pattern: str) -> pathspec.PathSpec:
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", [_to_gitwildmatch(pattern)])
    except (ValueError, re.error) as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


class PathMatcher:
    """Matches paths relative to a tree root against glob-style ignore patterns.

    A path is ignored when any pattern matches it. Patterns use gitignore
    wildcards: ``*`` and ``?`` within a path segment, ``**`` across segments
    and character classes. A pattern without a slash matches at any depth, and
    a pattern matching a directory name (``build``, ``cache/``) matches every
    path below it. There is no negation.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self.patterns = tuple(pattern.strip() for pattern in patterns if pattern.strip())
        compiled = [_compile(pattern) for pattern in self.patterns]
        self._spec = pathspec.PathSpec([p for spec in compiled for p in spec.patterns])

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def matches(self, relative_path: str | PurePath) -> bool:
        if not self.patterns:
            return False
        unix_path = relative_path.as_posix() if isinstance(relative_path, PurePath) else relative_path
        return self._spec.match_file(unix_path)


def build_path_matcher(patterns: Iterable[str]) -> PathMatcher:
    matcher = PathMatcher(patterns)
    for pattern in matcher.patterns:
        log.info("Added ignore pattern: %s", pattern)
    return matcher
