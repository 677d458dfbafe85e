"""Shared pytest fixtures and configuration."""

import pytest

from clipsync.core.config import Settings
from clipsync.core.logging_config import get_logger
from clipsync.services.video_providers import ProviderRegistry
from clipsync.storage.blob_store import LocalBlobStore
from tests.fakes import FakeProvider


@pytest.fixture
def settings(tmp_path):
    """Create test settings with temp storage and no throttling delays."""
    return Settings(
        media_root=str(tmp_path / "public"),
        jobs_storage_path=str(tmp_path / "jobs"),
        google_ai_api_key="test-google-key",
        higgsfield_api_key_id="test-key-id",
        higgsfield_api_key_secret="test-key-secret",
        veo_request_delay_seconds=0.0,
        higgsfield_request_delay_seconds=0.0,
        poll_delay_seconds=0.0,
        max_poll_errors=3,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def fake_provider(settings, logger):
    """Fake Higgsfield-style provider (5-10s clips)."""
    return FakeProvider(settings, logger)


@pytest.fixture
def registry(fake_provider):
    """Registry holding only the fake provider."""
    return ProviderRegistry([fake_provider])


@pytest.fixture
def blob_store(settings, logger, monkeypatch):
    """Local blob store whose remote downloads return fixed bytes."""
    store = LocalBlobStore(settings, logger)
    monkeypatch.setattr(store, "download", lambda url: b"fake-mp4-bytes")
    return store
