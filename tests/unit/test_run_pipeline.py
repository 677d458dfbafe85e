"""Tests for the command-line driver."""

from unittest.mock import patch

import pytest

from clipsync.core.config import settings
from clipsync.pipelines.run_pipeline import main
from clipsync.services.video_providers import ProviderRegistry
from clipsync.storage.repository import JobRepository
from tests.fakes import FakeProvider


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Run every command from a temp directory so relative storage paths stay isolated."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_split_prints_sections(capsys):
    """Test split prints each timed section and the total."""
    result = main(["split", "--script", "A. B. C.", "--audio-duration", "18"])

    out = capsys.readouterr().out
    assert result == 0
    assert "[0]" in out and "A. B." in out
    assert "Total: 18.0s in 2 sections" in out


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])

    assert exc.value.code == 0
    assert settings.app_version in capsys.readouterr().out


def test_split_reads_script_file(tmp_path, capsys):
    script_file = tmp_path / "script.txt"
    script_file.write_text("One line only.", encoding="utf-8")

    result = main(["split", "--script-file", str(script_file), "--audio-duration", "6"])

    assert result == 0
    assert "in 1 sections" in capsys.readouterr().out


def test_split_empty_script_fails():
    """Test an empty script is reported as an error exit code."""
    assert main(["split", "--script", "  ", "--audio-duration", "10"]) == 1


def test_start_creates_job(capsys, logger):
    """Test start persists a rendering job and prints its id."""
    provider = FakeProvider(settings, logger)
    with patch(
        "clipsync.pipelines.run_pipeline.build_default_registry", return_value=ProviderRegistry([provider])
    ), patch("clipsync.services.clip_orchestrator.time.sleep"):
        result = main(
            [
                "start",
                "--script",
                "The harbor wakes. Boats leave at dawn.",
                "--audio-duration",
                "12",
                "--topic",
                "Harbor",
            ]
        )

    job_id = capsys.readouterr().out.strip().splitlines()[-1]
    assert result == 0
    assert provider.submitted
    job = JobRepository(settings, logger).load_job(job_id)
    assert job is not None
    assert job.topic == "Harbor"


def test_poll_missing_job_returns_error():
    assert main(["poll", "job_missing"]) == 1


def test_job_commands_require_topic():
    """Test argparse rejects start without a topic."""
    with pytest.raises(SystemExit):
        main(["start", "--script", "A.", "--audio-duration", "5"])
