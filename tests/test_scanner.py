import os
from pathlib import Path

from conftest import write_file

from treesync.ignore_engine import PathMatcher
from treesync.scanner import scan_tree


def _keys(entries) -> set[str]:
    return {entry.relative for entry in entries}


def test_scan_returns_files_only_with_relative_keys(source: Path) -> None:
    write_file(source / "a.txt", "AAAAAAAAAA")
    write_file(source / "sub" / "deeper" / "c.txt", "c")
    (source / "empty-dir").mkdir()

    entries = scan_tree(source)

    assert _keys(entries) == {"a.txt", "sub/deeper/c.txt"}
    by_key = {entry.relative: entry for entry in entries}
    assert by_key["a.txt"].size == 10
    assert by_key["a.txt"].path == source / "a.txt"
    assert by_key["a.txt"].mtime_ns == (source / "a.txt").stat().st_mtime_ns


def test_scan_skips_ignored_files_and_directories(source: Path) -> None:
    write_file(source / "a.txt", "a")
    write_file(source / "b.log", "b")
    write_file(source / "node_modules" / "pkg" / "index.js", "x")
    write_file(source / "sub" / "d.log", "d")

    entries = scan_tree(source, PathMatcher(["*.log", "node_modules/"]))

    assert _keys(entries) == {"a.txt"}


def test_scan_follows_symlinked_files_and_directories(tmp_path: Path, source: Path) -> None:
    outside = tmp_path / "outside"
    write_file(outside / "shared" / "s.txt", "shared!")
    write_file(outside / "target.txt", "12345")
    os.symlink(outside / "shared", source / "linked-dir")
    os.symlink(outside / "target.txt", source / "linked.txt")

    entries = scan_tree(source)

    by_key = {entry.relative: entry for entry in entries}
    assert set(by_key) == {"linked-dir/s.txt", "linked.txt"}
    assert by_key["linked.txt"].size == 5


def test_scan_skips_broken_symlinks(tmp_path: Path, source: Path) -> None:
    write_file(source / "ok.txt", "ok")
    os.symlink(tmp_path / "does-not-exist", source / "dangling.txt")

    entries = scan_tree(source)

    assert _keys(entries) == {"ok.txt"}


def test_scan_stops_at_symlink_cycles(source: Path) -> None:
    write_file(source / "sub" / "file.txt", "x")
    os.symlink(source, source / "sub" / "loop")

    entries = scan_tree(source)

    assert _keys(entries) == {"sub/file.txt"}


def test_scan_of_missing_root_is_empty(tmp_path: Path) -> None:
    assert scan_tree(tmp_path / "missing") == []


def test_scan_keeps_every_file_the_matcher_does_not_match(source: Path) -> None:
    write_file(source / "a.txt", "a")
    write_file(source / "!b.txt", "b")
    write_file(source / "sub" / "c.txt", "c")
    write_file(source / "sub" / "skip.tmp", "t")
    matcher = PathMatcher(["*.tmp", "!b.txt"])

    entries = scan_tree(source, matcher)

    assert _keys(entries) == {"a.txt", "sub/c.txt"}
    for entry in entries:
        assert not matcher.matches(entry.relative)


def test_scan_agrees_with_matcher_for_bang_patterns(source: Path) -> None:
    write_file(source / "a.txt", "a")
    write_file(source / "sub" / "b.txt", "b")
    matcher = PathMatcher(["sub/*.log", "!*.txt"])

    entries = scan_tree(source, matcher)

    assert matcher.matches("sub/b.txt") is False
    assert _keys(entries) == {"a.txt", "sub/b.txt"}
