"""Tests for FastAPI application."""

from music_library.core.config import Config, ServerConfig, StorageConfig
from web.backend.main import create_app
from fastapi.testclient import TestClient


def test_health_endpoint(client):
    """Test health check endpoint returns 200."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_cors_headers(client):
    """Test CORS headers are present for the configured origin."""
    response = client.options(
        "/health",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_cors_exposes_range_headers(client, api_track):
    """Browser players must be able to read Content-Range."""
    response = client.get(
        f"/tracks/{api_track.id}/stream",
        headers={"Origin": "http://localhost:3000", "Range": "bytes=0-9"},
    )
    exposed = response.headers["access-control-expose-headers"]
    assert "Content-Range" in exposed
    assert "Accept-Ranges" in exposed


def test_unknown_route_uses_error_body(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_api_prefix(db_path):
    """Routes move under the configured prefix; /health stays at the root."""
    config = Config(
        server=ServerConfig(api_prefix="/api"),
        storage=StorageConfig(database_path=str(db_path)),
    )
    client = TestClient(create_app(config))

    assert client.get("/api/tracks/missing").status_code == 404
    assert client.get("/api/tracks/missing").json() == {"error": "track not found"}
    assert client.get("/tracks/missing").json() == {"error": "Not Found"}
    assert client.get("/health").status_code == 200


def test_stores_shared_on_app_state(app):
    """One set of stores is built per app and shared by every request."""
    assert app.state.streamer.track_store is app.state.track_store
    assert app.state.streamer.blob_store is app.state.blob_store
