"""Tests for the HTTP API."""
import httpx
import pytest
from fastapi.testclient import TestClient

from collection_fallback.api.main import app
from collection_fallback.api.routes.embeds import get_preflight_client

from conftest import MAP_VIEW_RECORD_MAP

UNKNOWN_WITH_CONTENT = {"record_map": {"block": {"abc-123": {"type": "collection_view"}}}}


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "Collection Fallback API"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["embed_host"] == "www.notion.so"


def test_resolve_map_view(client):
    response = client.post("/v1/collections/resolve", json={
        "collection_view": {"v-1": {"value": {"id": "v-1", "type": "map_view"}}},
        "record_map": MAP_VIEW_RECORD_MAP,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "map"
    assert body["is_map"] is True
    assert body["identity"]["content_id"] == "abc123"
    assert body["identity"]["view_id"] == "v1"
    assert body["detection_required"] is False


def test_resolve_unknown_requires_detection(client):
    body = client.post("/v1/collections/resolve", json=UNKNOWN_WITH_CONTENT).json()
    assert body["kind"] == "unknown"
    assert body["detection_required"] is True


def test_session_map_view_embeds(client):
    response = client.post("/v1/collections/sessions", json={
        "collection_view": {"view": {"id": "v1", "kind": "map"}},
        "record_map": {},
        "block_id": "abc123",
    })
    assert response.status_code == 201
    output = response.json()["output"]
    assert output["state"] == "embed"
    assert output["url"] == "https://www.notion.so/abc123?v=v1"


def test_session_surface_signal_confirms(client):
    session_id = client.post("/v1/collections/sessions", json=UNKNOWN_WITH_CONTENT).json()["session_id"]
    assert client.get(f"/v1/collections/sessions/{session_id}").json()["state"] == "native"

    output = client.post(
        f"/v1/collections/sessions/{session_id}/surface",
        json={"kind": "added", "node": {"class_names": ["notion-collection-view-unsupported"]}},
    ).json()
    assert output["state"] == "embed"
    assert output["detection"]["phase"] == "confirmed"
    assert output["detection"]["signal"]["channel"] == "surface"


def test_session_diagnostic_signal_and_frame_flow(client):
    session_id = client.post("/v1/collections/sessions", json=UNKNOWN_WITH_CONTENT).json()["session_id"]
    output = client.post(
        f"/v1/collections/sessions/{session_id}/diagnostics",
        json={"message": "unsupported collection view", "payload": {"id": "v-9", "type": "map"}},
    ).json()
    assert output["state"] == "embed"
    assert output["url"] == "https://www.notion.so/abc123?v=v9"

    client.post(f"/v1/collections/sessions/{session_id}/frame/load")
    output = client.post(
        f"/v1/collections/sessions/{session_id}/frame/access",
        json={"readable": False, "error": "SecurityError: cross-origin"},
    ).json()
    assert output["state"] == "embed"

    output = client.post(
        f"/v1/collections/sessions/{session_id}/frame/access",
        json={"readable": True, "location": "about:blank"},
    ).json()
    assert output["state"] == "link_out"
    assert output["attempt"]["status"] == "csp_error"


def test_session_frame_errors_exhaust(client):
    session_id = client.post("/v1/collections/sessions", json={
        "collection_view": {"view": {"kind": "map"}}, "record_map": {}, "block_id": "abc123",
    }).json()["session_id"]
    for _ in range(5):
        output = client.post(f"/v1/collections/sessions/{session_id}/frame/error").json()
    assert output["state"] == "link_out"
    assert output["attempt"]["status"] == "load_exhausted"


def test_session_settle_and_delete(client):
    session_id = client.post("/v1/collections/sessions", json=UNKNOWN_WITH_CONTENT).json()["session_id"]
    output = client.post(f"/v1/collections/sessions/{session_id}/settle").json()
    assert output["detection"]["phase"] == "settled"

    assert client.delete(f"/v1/collections/sessions/{session_id}").json() == {"deleted": session_id}
    assert client.get(f"/v1/collections/sessions/{session_id}").status_code == 404


def test_unknown_session_is_404(client):
    assert client.get("/v1/collections/sessions/nope").status_code == 404
    assert client.post("/v1/collections/sessions/nope/frame/error").status_code == 404
    assert client.delete("/v1/collections/sessions/nope").status_code == 404


def test_embed_variants(client):
    body = client.get("/v1/embeds/abc-123/variants", params={"view_id": "v-1"}).json()
    assert [v["variant"] for v in body] == [1, 2, 3, 4, 5]
    assert body[0]["url"] == "https://www.notion.so/abc123?v=v1"

    body = client.get("/v1/embeds/abc-123/variants").json()
    assert [v["variant"] for v in body] == [1, 2, 3, 4, 5]
    assert body[0]["url"] == "https://www.notion.so/abc123"


def test_embed_variants_empty_id(client):
    assert client.get("/v1/embeds/---/variants").status_code == 422


def test_preflight_uses_injected_client(client):
    def handler(request):
        return httpx.Response(200, headers={"Content-Security-Policy": "frame-ancestors 'none'"})

    def mock_client():
        with httpx.Client(transport=httpx.MockTransport(handler)) as c:
            yield c

    app.dependency_overrides[get_preflight_client] = mock_client
    try:
        body = client.post("/v1/embeds/preflight", json={"url": "https://www.notion.so/abc123"}).json()
    finally:
        app.dependency_overrides.clear()
    assert body["blocked"] is True
    assert body["reason"] == "frame-ancestors 'none'"


def test_preflight_refuses_urls_off_the_embed_host(client):
    fetched = []

    def handler(request):
        fetched.append(str(request.url))
        return httpx.Response(200)

    def mock_client():
        with httpx.Client(transport=httpx.MockTransport(handler)) as c:
            yield c

    app.dependency_overrides[get_preflight_client] = mock_client
    try:
        response = client.post(
            "/v1/embeds/preflight", json={"url": "http://169.254.169.254/latest/meta-data/"}
        )
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 422
    assert fetched == []
