"""End-to-end tests for the track endpoints and range streaming."""

import dataclasses
import io

import anyio
import pytest
from fastapi.testclient import TestClient

from music_library.core.errors import BlobNotFoundError, StorageIOError
from web.backend.main import create_app
from web.backend.responses import TrackStreamResponse


def test_range_returns_requested_bytes(client, api_track, audio_bytes):
    response = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=500-999"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 500-999/1000"
    assert response.headers["content-length"] == "500"
    assert response.content == audio_bytes[500:]


def test_open_ended_range(client, api_track, audio_bytes):
    response = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=100-"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 100-999/1000"
    assert response.content == audio_bytes[100:]


def test_end_past_size_is_clamped(client, api_track, audio_bytes):
    response = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=900-5000"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 900-999/1000"
    assert response.content == audio_bytes[900:]


def test_no_range_header_returns_whole_file_as_partial(client, api_track, audio_bytes):
    response = client.get(f"/tracks/{api_track.id}/stream")

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 0-999/1000"
    assert response.content == audio_bytes


def test_no_range_header_ok_when_partial_not_forced(app_config, audio_bytes):
    config = dataclasses.replace(
        app_config,
        streaming=dataclasses.replace(app_config.streaming, always_partial=False),
    )
    app = create_app(config)
    handle = app.state.blob_store.put(io.BytesIO(audio_bytes), "song.mp3")
    track = app.state.track_store.create_track("Test Song", handle, len(audio_bytes))
    client = TestClient(app)

    response = client.get(f"/tracks/{track.id}/stream")

    assert response.status_code == 200
    assert "content-range" not in response.headers
    assert response.content == audio_bytes


def test_stream_headers(client, api_track):
    response = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=0-0"})

    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-disposition"] == 'inline; filename="Test Song"'
    assert len(response.content) == 1


def test_same_range_twice_is_identical(client, api_track):
    url = f"/tracks/{api_track.id}/stream"
    first = client.get(url, headers={"Range": "bytes=250-749"})
    second = client.get(url, headers={"Range": "bytes=250-749"})

    assert first.content == second.content
    assert len(first.content) == 500


@pytest.mark.parametrize(
    "range_header",
    ["bytes=1000-", "bytes=2000-3000", "bytes=500-100", "bytes=-500", "bytes=0-1,5-9", "items=0-1", "garbage"],
)
def test_unsatisfiable_range(client, api_track, range_header):
    response = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": range_header})

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */1000"
    assert "error" in response.json()


def test_unknown_track(client):
    response = client.get("/tracks/does-not-exist/stream")

    assert response.status_code == 404
    assert response.json() == {"error": "track not found"}


def test_missing_audio_data(client, app):
    track = app.state.track_store.create_track("Orphan", "no-such-blob", total_size=10)

    response = client.get(f"/tracks/{track.id}/stream")

    assert response.status_code == 404
    assert response.json() == {"error": "audio data not found"}


def test_storage_failure_before_body_is_500(client, app, audio_bytes):
    # Metadata claims more bytes than are stored
    handle = app.state.blob_store.put(io.BytesIO(audio_bytes[:100]), "short.mp3")
    track = app.state.track_store.create_track("Short", handle, total_size=1000)

    response = client.get(f"/tracks/{track.id}/stream", headers={"Range": "bytes=500-"})

    assert response.status_code == 500
    assert "error" in response.json()


def test_truncated_blob_without_range_is_500(client, app, audio_bytes):
    handle = app.state.blob_store.put(io.BytesIO(audio_bytes[:100]), "short.mp3")
    track = app.state.track_store.create_track("Short", handle, total_size=1000)

    response = client.get(f"/tracks/{track.id}/stream")

    assert response.status_code == 500
    assert "content-range" not in response.headers
    assert "truncated" in response.json()["error"]


def test_reader_closed_after_response(app, client, api_track, monkeypatch):
    opened = []
    original_open = app.state.blob_store.open

    def tracking_open(handle):
        reader, size = original_open(handle)
        opened.append(reader)
        return reader, size

    monkeypatch.setattr(app.state.blob_store, "open", tracking_open)

    client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=10-20"})

    assert len(opened) == 1
    assert opened[0].closed


def test_storage_failure_mid_body_closes_reader(app, api_track, monkeypatch):
    opened = []
    original_open = app.state.blob_store.open

    def failing_open(handle):
        reader, size = original_open(handle)
        opened.append(reader)

        def read(n):
            raise StorageIOError("disk went away")

        reader.read = read
        return reader, size

    monkeypatch.setattr(app.state.blob_store, "open", failing_open)
    client = TestClient(app, raise_server_exceptions=False)

    # Status line is already out when the body fails, so the body is just cut short
    response = client.get(f"/tracks/{api_track.id}/stream")

    assert response.status_code == 206
    assert len(response.content) < 1000
    assert opened[0].closed


def test_get_track_metadata(client, api_track):
    response = client.get(f"/tracks/{api_track.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == api_track.id
    assert data["title"] == "Test Song"
    assert data["artist"] == "Test Artist"
    assert data["total_size"] == 1000
    assert data["stream_url"] == f"/tracks/{api_track.id}/stream"


def test_delete_track_removes_audio(client, app, api_track):
    response = client.delete(f"/tracks/{api_track.id}")
    assert response.status_code == 204

    assert client.get(f"/tracks/{api_track.id}").status_code == 404
    assert client.get(f"/tracks/{api_track.id}/stream").status_code == 404
    with pytest.raises(BlobNotFoundError):
        app.state.blob_store.file_info(api_track.blob_handle)


def test_delete_unknown_track(client):
    response = client.delete("/tracks/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "track not found"}


def _asgi_scope(spec_version: str) -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": spec_version},
        "http_version": "1.1",
        "method": "GET",
        "path": "/",
        "headers": [],
    }


def test_reader_closed_when_send_fails(app, api_track):
    """A client that hangs up mid-body surfaces as a failing send()."""
    stream = app.state.streamer.open_stream(api_track.id)
    response = TrackStreamResponse(stream)
    sent = []

    async def receive():
        await anyio.sleep_forever()

    async def send(message):
        sent.append(message["type"])
        if message["type"] == "http.response.body":
            raise OSError("connection reset by peer")

    # Starlette reports this as OSError, ClientDisconnect or an exception group by version
    with pytest.raises(Exception):
        anyio.run(response, _asgi_scope("2.4"), receive, send)

    assert sent == ["http.response.start", "http.response.body"]
    assert stream.closed


def test_reader_closed_when_client_disconnects(app, api_track):
    """An http.disconnect message cancels the body task; the reader still closes."""
    stream = app.state.streamer.open_stream(api_track.id)
    response = TrackStreamResponse(stream)

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        await anyio.sleep(0)

    anyio.run(response, _asgi_scope("2.0"), receive, send)

    assert stream.closed


def test_upload_track(client, audio_bytes):
    response = client.post(
        "/tracks",
        files={"file": ("Uploaded Song.mp3", audio_bytes, "audio/mpeg")},
        data={"artist": "Band", "year": "2020"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Uploaded Song"
    assert data["artist"] == "Band"
    assert data["year"] == 2020
    assert data["total_size"] == 1000

    streamed = client.get(data["stream_url"], headers={"Range": "bytes=900-"})
    assert streamed.status_code == 206
    assert streamed.content == audio_bytes[900:]


def test_upload_requires_file(client):
    response = client.post("/tracks", data={"artist": "Band"})
    assert response.status_code == 422
    assert response.json()["error"] == "invalid request"


def test_list_tracks(client, api_track):
    response = client.get("/tracks")

    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [api_track.id]


def test_update_track(client, api_track):
    response = client.patch(f"/tracks/{api_track.id}", json={"title": "Renamed", "genre": "Jazz"})

    assert response.status_code == 200
    assert response.json()["title"] == "Renamed"
    assert response.json()["artist"] == "Test Artist"

    streamed = client.get(f"/tracks/{api_track.id}/stream", headers={"Range": "bytes=0-0"})
    assert streamed.headers["content-disposition"] == 'inline; filename="Renamed"'


def test_update_unknown_track(client):
    response = client.patch("/tracks/nope", json={"title": "X"})
    assert response.status_code == 404
    assert response.json() == {"error": "track not found"}
