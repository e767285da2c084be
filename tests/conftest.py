"""
Test configuration and fixtures for the PopUI server tests.

Provides temporary storage, an in-memory renderer and a ready-made app.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from popui.config import Settings
from popui.main import create_app
from popui.mcp.dispatcher import ToolDispatcher
from popui.mcp.protocol import list_changed_notification
from popui.services.session_registry import ConnectionRegistry
from popui.services.surface_store import SurfaceStore

from tests._helpers import FakeRenderBridge


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tempdir:
        yield Path(tempdir)


@pytest.fixture
def uploads_dir(temp_dir):
    path = temp_dir / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(uploads_dir, temp_dir):
    """Settings pointing at temporary storage."""
    settings = Settings()
    settings.uploads_dir = str(uploads_dir)
    settings.surface_suffix = ".tsx"
    settings.renderer_timeout = 0.5
    settings.sse_heartbeat_interval = 0.05
    settings.session_fallback_enabled = True
    settings.max_upload_bytes = 1024
    settings.file_logging_enabled = False
    settings.log_dir = str(temp_dir / "logs")
    return settings


@pytest.fixture
def bridge():
    return FakeRenderBridge()


@pytest.fixture
def store(uploads_dir, bridge):
    return SurfaceStore(uploads_dir, bridge, suffix=".tsx", bridge_timeout=0.5)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def dispatcher(store, registry):
    async def notify():
        await registry.broadcast(list_changed_notification())

    return ToolDispatcher(store, on_list_changed=notify)


@pytest.fixture
def app(test_settings, bridge):
    """Create FastAPI app instance for testing."""
    return create_app(test_settings, bridge=bridge)


@pytest.fixture
def client(app):
    """Create test client for HTTP requests."""
    with TestClient(app) as test_client:
        yield test_client


def pytest_configure(config):
    """Configure custom test markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
