from pathlib import Path

import pytest

from treesync.config import AppConfig, JobConfig, SyncRequest, build_request, get_job, load_config
from treesync.errors import ConfigurationError


def test_load_config_reads_jobs_with_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "treesync.yaml"
    config_file.write_text(
        """
jobs:
  - name: photos
    source: /data/photos
    destination: /backup/photos
    deleteExtraneous: true
    parallelism: 8
    ignore:
      - "*.tmp"
      - ".cache/"
  - name: docs
    source: docs
    destination: /backup/docs
""".strip(),
        encoding="utf-8",
    )

    loaded = load_config(config_file)

    assert [job.name for job in loaded.jobs] == ["photos", "docs"]
    photos = loaded.jobs[0]
    assert photos.source == Path("/data/photos")
    assert photos.delete_extraneous is True
    assert photos.parallelism == 8
    assert photos.ignore == ["*.tmp", ".cache/"]
    assert photos.create_destination is True
    docs = loaded.jobs[1]
    assert docs.source == tmp_path / "docs"
    assert docs.delete_extraneous is False
    assert docs.dry_run is False
    assert docs.parallelism is None


def test_load_config_supports_json(tmp_path: Path) -> None:
    config_file = tmp_path / "treesync.json"
    config_file.write_text(
        '{"jobs": [{"name": "j", "source": "/a", "destination": "/b", "dryRun": true}]}',
        encoding="utf-8",
    )

    loaded = load_config(config_file)

    assert loaded.jobs[0].dry_run is True


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("jobs: []", "non-empty 'jobs' list"),
        ("jobs:\n  - name: j\n    destination: /b", "jobs[0].source"),
        ("jobs:\n  - name: j\n    source: /a\n    destination: /b\n    parallelism: 0", "positive integer"),
        ("jobs:\n  - name: j\n    source: /a\n    destination: /b\n    deleteExtraneous: yes-please", "boolean"),
        (
            "jobs:\n  - {name: j, source: /a, destination: /b}\n  - {name: j, source: /c, destination: /d}",
            "Duplicate job name",
        ),
    ],
)
def test_load_config_rejects_invalid_jobs(tmp_path: Path, body: str, message: str) -> None:
    config_file = tmp_path / "bad.yaml"
    config_file.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigurationError, match=message.replace("[", r"\[").replace("]", r"\]")):
        load_config(config_file)


def test_load_config_rejects_unknown_extension(tmp_path: Path) -> None:
    config_file = tmp_path / "treesync.toml"
    config_file.write_text("jobs = []", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="yaml"):
        load_config(config_file)


def test_build_request_merges_ignore_file_and_dry_run(tmp_path: Path) -> None:
    ignore_file = tmp_path / ".syncignore"
    ignore_file.write_text("*.log\n", encoding="utf-8")
    job = JobConfig(
        name="j",
        source=tmp_path / "src",
        destination=tmp_path / "dst",
        parallelism=3,
        ignore=["*.tmp"],
        ignore_file=ignore_file,
    )

    request = build_request(job, dry_run=True)

    assert request.ignore_patterns == ("*.tmp", "*.log")
    assert request.dry_run is True
    assert request.parallelism == 3


def test_request_normalized_clamps_parallelism(tmp_path: Path) -> None:
    request = SyncRequest(source=tmp_path / "a", destination=tmp_path / "b", parallelism=0)

    normalized = request.normalized()

    assert normalized.parallelism == 1
    assert normalized.source.is_absolute()


def test_get_job_filters_by_name() -> None:
    jobs = [
        JobConfig(name="one", source=Path("/a"), destination=Path("/b")),
        JobConfig(name="two", source=Path("/c"), destination=Path("/d")),
    ]

    assert get_job(AppConfig(jobs=jobs), "two") == [jobs[1]]
    assert get_job(AppConfig(jobs=jobs), None) == jobs
    with pytest.raises(ConfigurationError, match="No job named 'three'"):
        get_job(AppConfig(jobs=jobs), "three")
