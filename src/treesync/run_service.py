from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging

from treesync.config import JobConfig, SyncRequest, build_request, get_job, load_config
from treesync.errors import ConfigurationError, SyncError
from treesync.ignore_engine import PathMatcher, build_path_matcher
from treesync.models import SyncResult
from treesync.progress import RichProgressDisplay
from treesync.sync_engine import prepare_destination, synchronize, validate_request


EXIT_SUCCESS = 0
EXIT_RUNTIME_OR_CONFIG_ERROR = 1
EXIT_PARTIAL_FAILURES = 2
EXIT_INVALID_CONFIG = 3


@dataclass(slots=True)
class RunSummary:
    copied: int = 0
    copied_bytes: int = 0
    unchanged: int = 0
    deleted: int = 0
    processed_jobs: int = 0
    failed_jobs: int = 0
    partial_failures: bool = False

    def absorb(self, result: SyncResult) -> None:
        self.copied += result.copy.items
        self.copied_bytes += result.copy.bytes
        self.unchanged += result.plan.unchanged
        self.deleted += result.delete.items
        self.processed_jobs += 1


def run_job(
    job: JobConfig,
    request: SyncRequest,
    matcher: PathMatcher,
    display: RichProgressDisplay | None = None,
) -> SyncResult:
    validate_request(request)
    if job.create_destination:
        prepare_destination(request)
    elif not request.destination.exists():
        raise ConfigurationError(f"Destination directory does not exist: {request.destination}")
    return synchronize(request, display=display, matcher=matcher)


def run_sync_jobs(
    config_path: Path,
    job_name: str | None = None,
    dry_run: bool = False,
    continue_on_error: bool = False,
    display: RichProgressDisplay | None = None,
    logger: logging.Logger | None = None,
) -> tuple[int, RunSummary]:
    log = logger or logging.getLogger("treesync.run")

    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
        prepared = []
        for job in jobs:
            request = build_request(job, dry_run=dry_run)
            prepared.append((job, request, build_path_matcher(request.ignore_patterns)))
    except ConfigurationError as exc:
        log.error("Invalid config: %s", exc)
        return EXIT_INVALID_CONFIG, RunSummary(partial_failures=True)

    summary = RunSummary()

    for job, request, matcher in prepared:
        try:
            result = run_job(job, request, matcher, display=display)
        except (SyncError, OSError) as exc:
            summary.partial_failures = True
            summary.failed_jobs += 1
            log.error("[%s] failed for source %s: %s", job.name, job.source, exc)
            if not continue_on_error:
                return EXIT_RUNTIME_OR_CONFIG_ERROR, summary
            continue

        summary.absorb(result)
        log.info(
            "[%s] %s -> %s | copied=%s unchanged=%s deleted=%s%s",
            job.name,
            job.source,
            job.destination,
            result.copy.items,
            result.plan.unchanged,
            result.delete.items,
            " (dry run)" if result.dry_run else "",
        )

    exit_code = EXIT_PARTIAL_FAILURES if summary.partial_failures else EXIT_SUCCESS
    return exit_code, summary
