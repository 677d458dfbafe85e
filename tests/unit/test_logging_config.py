"""Tests for logging setup."""

import json

import pytest
from loguru import logger as loguru_logger

from clipsync.core.logging_config import get_logger, setup_logging


@pytest.fixture
def captured():
    """Collect formatted messages from a temporary sink."""
    messages = []
    sink_id = loguru_logger.add(messages.append, format="{message}")
    yield messages
    loguru_logger.remove(sink_id)


@pytest.fixture
def restore_logging():
    yield
    setup_logging()


def test_get_logger_binds_job_and_clip(captured):
    get_logger("clipsync.orchestrator", job_id="job42", clip_index=2).info("polling")

    extra = captured[0].record["extra"]
    assert extra["name"] == "clipsync.orchestrator"
    assert extra["job_id"] == "job42"
    assert extra["clip_index"] == 2
    assert extra["job_tag"] == " [job42#2]"


@pytest.mark.parametrize(
    "context, tag",
    [
        ({"job_id": "job42"}, " [job42]"),
        ({"clip_index": 0}, " [clip 0]"),
        ({}, ""),
    ],
)
def test_job_tag(captured, context, tag):
    get_logger("clipsync.test", **context).info("message")

    assert captured[0].record["extra"]["job_tag"] == tag


def test_bind_adds_clip_to_job_logger(captured):
    """Test a clip index bound later joins the job tag."""
    get_logger("clipsync.test", job_id="job42").bind(clip_index=3).info("clip done")

    assert captured[0].record["extra"]["job_tag"] == " [job42#3]"


def test_file_sink_writes_json_lines(settings, tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "clipsync.log"
    setup_logging(settings.model_copy(update={"log_file": str(log_file), "log_level": "INFO"}))

    get_logger("clipsync.test", job_id="job7").info("merged")
    get_logger("clipsync.test").debug("hidden at INFO")
    setup_logging()

    records = [json.loads(line)["record"] for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [r["message"] for r in records] == ["merged"]
    assert records[0]["extra"]["job_id"] == "job7"
    assert records[0]["level"]["name"] == "INFO"


def test_debug_forces_debug_level(settings, tmp_path, restore_logging):
    log_file = tmp_path / "debug.log"
    setup_logging(settings.model_copy(update={"log_file": str(log_file), "log_level": "WARNING", "debug": True}))

    get_logger("clipsync.test").debug("frame timings")
    setup_logging()

    assert "frame timings" in log_file.read_text(encoding="utf-8")
