"""Shared pytest fixtures: isolated SQLite stores and an API client per test."""

import io

import pytest
from fastapi.testclient import TestClient

from music_library.core.config import Config, StorageConfig
from music_library.core.database import init_database
from music_library.domain.playlists import PlaylistStore
from music_library.domain.tracks import TrackStore
from music_library.streaming import SqliteBlobStore


def make_audio(size: int) -> bytes:
    """Deterministic non-repeating-looking payload standing in for MP3 data."""
    return bytes((i * 7 + i // 251) % 256 for i in range(size))


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "library.db"
    init_database(path)
    return path


@pytest.fixture
def track_store(db_path) -> TrackStore:
    return TrackStore(db_path)


@pytest.fixture
def playlist_store(db_path) -> PlaylistStore:
    return PlaylistStore(db_path)


@pytest.fixture
def blob_store(db_path) -> SqliteBlobStore:
    # Small chunks so reads cross stored-chunk boundaries
    return SqliteBlobStore(db_path, chunk_size=100)


@pytest.fixture
def audio_bytes() -> bytes:
    return make_audio(1000)


@pytest.fixture
def stored_track(track_store, blob_store, audio_bytes):
    handle = blob_store.put(io.BytesIO(audio_bytes), "song.mp3")
    return track_store.create_track(
        "Test Song",
        handle,
        len(audio_bytes),
        artist="Test Artist",
        duration=61.7,
    )


@pytest.fixture
def app_config(db_path) -> Config:
    return Config(
        storage=StorageConfig(database_path=str(db_path), blob_chunk_size=100),
    )


@pytest.fixture
def app(app_config):
    from web.backend.main import create_app

    return create_app(app_config)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def api_track(app, audio_bytes):
    """A track stored through the app's own stores."""
    handle = app.state.blob_store.put(io.BytesIO(audio_bytes), "song.mp3")
    return app.state.track_store.create_track(
        "Test Song", handle, len(audio_bytes), artist="Test Artist", duration=61.7
    )
