from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import json
import os
import yaml

from treesync.errors import ConfigurationError
from treesync.ignore_engine import read_ignore_file


def default_parallelism() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True, slots=True)
class SyncRequest:
    source: Path
    destination: Path
    delete_extraneous: bool = False
    dry_run: bool = False
    parallelism: int = field(default_factory=default_parallelism)
    ignore_patterns: tuple[str, ...] = ()

    def normalized(self) -> "SyncRequest":
        return replace(
            self,
            source=self.source.expanduser().resolve(),
            destination=self.destination.expanduser().resolve(),
            parallelism=max(1, int(self.parallelism)),
            ignore_patterns=tuple(self.ignore_patterns),
        )


@dataclass(slots=True)
class JobConfig:
    name: str
    source: Path
    destination: Path
    delete_extraneous: bool = False
    dry_run: bool = False
    parallelism: int | None = None
    ignore: list[str] = field(default_factory=list)
    ignore_file: Path | None = None
    create_destination: bool = True


@dataclass(slots=True)
class AppConfig:
    jobs: list[JobConfig]


def _as_path(value: Any, field_name: str, base_dir: Path | None = None) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{field_name} must be a non-empty string path")
    path = Path(value).expanduser()
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return path


def _as_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigurationError(f"{field_name} must be a boolean")


def _as_positive_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{field_name} must be a positive integer")
    return value


def _as_list_of_strings(value: Any, field_name: str, default: list[str] | None = None) -> list[str]:
    if value is None:
        return list(default or [])
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise ConfigurationError(f"{field_name} must be a list of strings")
    return [item for item in value if item.strip()]


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigurationError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    try:
        if suffix in {".yml", ".yaml"}:
            loaded = yaml.safe_load(text)
        elif suffix == ".json":
            loaded = json.loads(text)
        else:
            raise ConfigurationError("Config file must be .yaml/.yml or .json")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse config file {config_path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError("Config root must be an object")
    return loaded


def load_config(config_path: Path) -> AppConfig:
    raw = _load_raw_config(config_path)
    raw_jobs = raw.get("jobs")
    if not isinstance(raw_jobs, list) or not raw_jobs:
        raise ConfigurationError("Config must contain non-empty 'jobs' list")

    base_dir = config_path.parent
    jobs: list[JobConfig] = []
    names: set[str] = set()

    for index, raw_job in enumerate(raw_jobs):
        if not isinstance(raw_job, dict):
            raise ConfigurationError(f"jobs[{index}] must be an object")

        name = raw_job.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"jobs[{index}].name must be a non-empty string")
        if name in names:
            raise ConfigurationError(f"Duplicate job name: {name}")
        names.add(name)

        raw_ignore_file = raw_job.get("ignoreFile")
        ignore_file = (
            _as_path(raw_ignore_file, f"jobs[{index}].ignoreFile", base_dir) if raw_ignore_file else None
        )

        jobs.append(
            JobConfig(
                name=name,
                source=_as_path(raw_job.get("source"), f"jobs[{index}].source", base_dir),
                destination=_as_path(raw_job.get("destination"), f"jobs[{index}].destination", base_dir),
                delete_extraneous=_as_bool(
                    raw_job.get("deleteExtraneous"), f"jobs[{index}].deleteExtraneous", default=False
                ),
                dry_run=_as_bool(raw_job.get("dryRun"), f"jobs[{index}].dryRun", default=False),
                parallelism=_as_positive_int(raw_job.get("parallelism"), f"jobs[{index}].parallelism"),
                ignore=_as_list_of_strings(raw_job.get("ignore"), f"jobs[{index}].ignore"),
                ignore_file=ignore_file,
                create_destination=_as_bool(
                    raw_job.get("createDestination"), f"jobs[{index}].createDestination", default=True
                ),
            )
        )

    return AppConfig(jobs=jobs)


def build_request(job: JobConfig, dry_run: bool = False) -> SyncRequest:
    patterns = list(job.ignore)
    if job.ignore_file is not None:
        patterns.extend(read_ignore_file(job.ignore_file))
    return SyncRequest(
        source=job.source,
        destination=job.destination,
        delete_extraneous=job.delete_extraneous,
        dry_run=dry_run or job.dry_run,
        parallelism=job.parallelism or default_parallelism(),
        ignore_patterns=tuple(patterns),
    )


def get_job(config: AppConfig, job_name: str | None) -> list[JobConfig]:
    if not job_name:
        return config.jobs
    matched = [job for job in config.jobs if job.name == job_name]
    if not matched:
        raise ConfigurationError(f"No job named '{job_name}' found")
    return matched
