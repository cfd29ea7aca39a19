"""Shared fixtures for the collection fallback test suite."""
import pytest

from collection_fallback.config import FallbackSettings, reset_settings
from collection_fallback.detection.diagnostics import DiagnosticEmitter
from collection_fallback.detection.scheduler import ManualScheduler
from collection_fallback.detection.signals import SignalRegistry
from collection_fallback.detection.surface import InMemoryRenderSurface


# ── Minimal provider payloads ───────────────────────────────────────────

MAP_VIEW_RECORD_MAP = {
    "block": {
        "page-1": {"value": {"id": "page-1", "type": "page"}},
        "abc-123": {"value": {"id": "abc-123", "type": "collection_view", "view_ids": ["v-1"]}},
    },
    "collection_view": {
        "v-1": {"value": {"id": "v-1", "type": "map"}},
    },
}

TABLE_VIEW = {"t-1": {"value": {"id": "t-1", "type": "table"}}}
MAP_VIEW = {"v-1": {"value": {"id": "v-1", "type": "map"}}}


class RecordingCollaborator:
    """Collaborator stand-in that records how often it rendered."""

    def __init__(self, html: str = '<div class="notion-collection">rows</div>'):
        self.html = html
        self.calls = 0

    def render(self, request) -> str:
        self.calls += 1
        return self.html


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Keep environment overrides from leaking between tests."""
    for name in FallbackSettings.model_fields:
        monkeypatch.delenv(f"COLLECTION_FALLBACK_{name.upper()}", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return FallbackSettings()


@pytest.fixture
def signals():
    return SignalRegistry()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def surface():
    return InMemoryRenderSurface()


@pytest.fixture
def diagnostics():
    return DiagnosticEmitter()


@pytest.fixture
def collaborator():
    return RecordingCollaborator()
