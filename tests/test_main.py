from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from voice_relay import __version__
from voice_relay.bot.tool_bridge import ToolBridge
from voice_relay.main import create_app
from voice_relay.services.web_search import WebSearchClient, WebSearchResult
from voice_relay.websocket_manager import WebSocketManager


@pytest.fixture
def websocket_manager(settings, credential_provider):
    return WebSocketManager(settings, credential_provider=credential_provider, tool_bridge=ToolBridge())


@pytest.fixture
def search_client():
    client = AsyncMock(spec=WebSearchClient)
    client.search.return_value = WebSearchResult(
        success=True, query="weather", result="Sunny", timestamp="2024-01-01T00:00:00+00:00"
    )
    return client


@pytest.fixture
def app(settings, websocket_manager):
    return create_app(settings, websocket_manager=websocket_manager)


@pytest.fixture
def test_client(app):
    return TestClient(app)


def test_health_endpoint(test_client, websocket_manager):
    websocket_manager.registry.add_session("abc", object())

    response = test_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["active_sessions"] == 1
    assert "timestamp" in body


def test_root_endpoint(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert response.json()["version"] == __version__
    assert "/ws" in response.json()["endpoints"]


def test_upload_echoes_text(test_client):
    response = test_client.post(
        "/upload",
        json={"filename": "notes.txt", "text": "hello", "contentType": "text/plain"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["filename"] == "notes.txt"
    assert body["text"] == "hello"
    assert body["contentType"] == "text/plain"
    assert len(body["id"]) == 16


def test_upload_defaults(test_client):
    body = test_client.post("/upload", json={"filename": "blob.bin"}).json()

    assert body["text"] == ""
    assert body["contentType"] == "application/octet-stream"


def test_upload_missing_filename(test_client):
    response = test_client.post("/upload", json={"text": "hello"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing filename"


@pytest.mark.parametrize("content", [b"{not json", b"[1, 2, 3]"])
def test_upload_invalid_json(test_client, content):
    response = test_client.post("/upload", content=content, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid JSON"


@pytest.mark.parametrize("body", [{"filename": ["a"]}, {"filename": "a.txt", "text": {"nested": True}}])
def test_upload_rejects_non_string_fields(test_client, body):
    response = test_client.post("/upload", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid upload request"


def test_search_requires_query(test_client):
    assert test_client.get("/search").status_code == 400


def test_search_not_configured(test_client):
    assert test_client.get("/search", params={"q": "weather"}).status_code == 503


def test_search_endpoint(settings, websocket_manager, search_client):
    client = TestClient(create_app(settings, websocket_manager=websocket_manager, search_client=search_client))

    response = client.get("/search", params={"q": "weather"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "query": "weather",
        "result": "Sunny",
        "timestamp": "2024-01-01T00:00:00+00:00",
    }
    search_client.search.assert_awaited_once_with("weather")


def test_cors_preflight(test_client):
    response = test_client.options(
        "/upload",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_websocket_endpoint_delegates_to_manager(app, websocket_manager):
    """Test that /ws hands the connection to the WebSocketManager"""
    websocket_manager.handle_websocket = AsyncMock()
    websocket = MagicMock()

    route = next(r for r in app.routes if getattr(r, "path", None) == "/ws")
    await route.endpoint(websocket)

    websocket_manager.handle_websocket.assert_awaited_once_with(websocket)
