from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from rich.console import Console
from rich.filesize import decimal
from rich.logging import RichHandler

from treesync.config import SyncRequest, build_request, default_parallelism, get_job, load_config
from treesync.errors import ConfigurationError, InvalidPatternError, SyncError
from treesync.ignore_engine import PathMatcher, build_path_matcher, read_ignore_file
from treesync.models import SyncResult
from treesync.progress import RichProgressDisplay
from treesync.run_service import (
    EXIT_INVALID_CONFIG,
    EXIT_RUNTIME_OR_CONFIG_ERROR,
    EXIT_SUCCESS,
    run_sync_jobs,
)
from treesync.sync_engine import prepare_destination, synchronize, validate_request


LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

stderr_console = Console(stderr=True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="treesync", description="One-way directory synchronizer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every file operation")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--log-file", type=Path, help="Also write logs to a rotating log file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Synchronize files between source and destination")
    sync_parser.add_argument("-s", "--source", required=True, type=Path)
    sync_parser.add_argument("-d", "--destination", required=True, type=Path)
    sync_parser.add_argument(
        "-D",
        "--delete",
        action="store_true",
        help="Delete files in destination that don't exist in source",
    )
    sync_parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Only simulate, don't actually copy/delete files",
    )
    sync_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of parallel jobs (default: number of CPU cores)",
    )
    sync_parser.add_argument(
        "-i",
        "--ignore",
        action="append",
        default=[],
        help="Pattern of files to ignore (can be specified multiple times)",
    )
    sync_parser.add_argument("--ignore-file", type=Path, help="Read ignore patterns from a file")
    sync_parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    run_parser = subparsers.add_parser("run", help="Run sync jobs from a config file")
    run_parser.add_argument("--config", required=True, type=Path)
    run_parser.add_argument("--job", help="Run only one job by name")
    run_parser.add_argument("--dry-run", action="store_true")
    run_parser.add_argument("--continue-on-error", action="store_true")
    run_parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    validate_parser = subparsers.add_parser("validate-config", help="Validate config")
    validate_parser.add_argument("--config", required=True, type=Path)

    list_parser = subparsers.add_parser("list", help="List jobs and their source/destination mappings")
    list_parser.add_argument("--config", required=True, type=Path)
    list_parser.add_argument("--job", help="List only one job by name")

    return parser


def configure_logging(verbose: bool = False, quiet: bool = False, log_file: Path | None = None) -> logging.Logger:
    logger = logging.getLogger("treesync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if verbose:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.INFO)

    console_handler = RichHandler(console=stderr_console, show_path=False, markup=False)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def _progress_display(disabled: bool) -> RichProgressDisplay | None:
    if disabled or not stderr_console.is_terminal:
        return None
    return RichProgressDisplay(stderr_console)


def _print_result(request: SyncRequest, result: SyncResult) -> None:
    mode = " (dry run)" if result.dry_run else ""
    print(
        f"{request.source} -> {request.destination}{mode} | copied={result.copy.items} "
        f"({decimal(result.copy.bytes)}, {result.copy.elapsed:.2f}s) "
        f"unchanged={result.plan.unchanged} "
        f"deleted={result.delete.items} ({decimal(result.delete.bytes)}, {result.delete.elapsed:.2f}s)"
    )


def cmd_sync(
    source: Path,
    destination: Path,
    delete: bool,
    dry_run: bool,
    jobs: int | None,
    ignore: list[str],
    ignore_file: Path | None,
    no_progress: bool = False,
) -> int:
    if not source.exists() or not source.is_dir():
        print(f"Error: Source directory does not exist: {source}", file=sys.stderr)
        return EXIT_RUNTIME_OR_CONFIG_ERROR
    if jobs is not None and jobs < 1:
        print(f"Error: --jobs must be a positive integer, got {jobs}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    patterns = list(ignore)
    if ignore_file is not None:
        patterns.extend(read_ignore_file(ignore_file))

    request = SyncRequest(
        source=source,
        destination=destination,
        delete_extraneous=delete,
        dry_run=dry_run,
        parallelism=jobs or default_parallelism(),
        ignore_patterns=tuple(patterns),
    )

    try:
        matcher = build_path_matcher(request.ignore_patterns)
        validate_request(request)
        prepare_destination(request)
        result = synchronize(request, display=_progress_display(no_progress), matcher=matcher)
    except InvalidPatternError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_OR_CONFIG_ERROR
    except SyncError as exc:
        print(f"Error during synchronization: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_OR_CONFIG_ERROR
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_OR_CONFIG_ERROR

    _print_result(request, result)
    return EXIT_SUCCESS


def cmd_validate(config_path: Path) -> int:
    try:
        config = load_config(config_path)
        for job in config.jobs:
            PathMatcher(build_request(job).ignore_patterns)
    except ConfigurationError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    print(f"Valid config: {config_path} ({len(config.jobs)} job(s))")
    for job in config.jobs:
        print(
            f"  - job={job.name} "
            f"deleteExtraneous={str(job.delete_extraneous).lower()} "
            f"ignore={len(job.ignore)} "
            f"createDestination={str(job.create_destination).lower()}"
        )
    return EXIT_SUCCESS


def cmd_list(config_path: Path, job_name: str | None) -> int:
    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
    except ConfigurationError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    for job in jobs:
        flags = []
        if job.delete_extraneous:
            flags.append("delete")
        if job.dry_run:
            flags.append("dry-run")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"job: {job.name}{suffix}")
        print(f"  - {job.source} -> {job.destination}")
    return EXIT_SUCCESS


def cmd_run(
    config_path: Path,
    job_name: str | None,
    dry_run: bool,
    continue_on_error: bool,
    no_progress: bool = False,
) -> int:
    exit_code, summary = run_sync_jobs(
        config_path=config_path,
        job_name=job_name,
        dry_run=dry_run,
        continue_on_error=continue_on_error,
        display=_progress_display(no_progress),
    )
    print(
        f"jobs={summary.processed_jobs} failed={summary.failed_jobs} copied={summary.copied} "
        f"unchanged={summary.unchanged} deleted={summary.deleted}"
    )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    if args.command == "sync":
        return cmd_sync(
            source=args.source,
            destination=args.destination,
            delete=args.delete,
            dry_run=args.dry_run,
            jobs=args.jobs,
            ignore=args.ignore,
            ignore_file=args.ignore_file,
            no_progress=args.no_progress,
        )
    if args.command == "run":
        return cmd_run(
            config_path=args.config,
            job_name=args.job,
            dry_run=args.dry_run,
            continue_on_error=args.continue_on_error,
            no_progress=args.no_progress,
        )
    if args.command == "validate-config":
        return cmd_validate(args.config)
    if args.command == "list":
        return cmd_list(config_path=args.config, job_name=args.job)

    parser.print_help()
    return EXIT_RUNTIME_OR_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
