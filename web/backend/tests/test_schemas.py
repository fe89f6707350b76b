"""Tests for backend schemas."""

from music_library.domain.tracks import TrackRecord
from web.backend.schemas import ErrorResponse, PlaylistInfo, TrackInfo


def test_track_info_from_record():
    """Test TrackInfo built from a stored track."""
    record = TrackRecord(
        id="abc123",
        title="Test Track",
        blob_handle="blob-1",
        total_size=4096,
        artist="Test Artist",
        album="Test Album",
        year=2023,
        duration=180.5,
    )

    info = TrackInfo.from_record(record, "/api/tracks")

    assert info.id == "abc123"
    assert info.title == "Test Track"
    assert info.artist == "Test Artist"
    assert info.content_type == "audio/mpeg"
    assert info.total_size == 4096
    assert info.stream_url == "/api/tracks/abc123/stream"


def test_track_info_does_not_expose_blob_handle():
    record = TrackRecord(id="abc123", title="T", blob_handle="secret/path.mp3")
    data = TrackInfo.from_record(record, "/tracks").model_dump()

    assert "blob_handle" not in data
    assert "secret/path.mp3" not in str(data)


def test_playlist_info_schema():
    """Test PlaylistInfo Pydantic model."""
    track = TrackInfo.from_record(
        TrackRecord(id="t1", title="One", blob_handle="b1"), "/tracks"
    )
    playlist = PlaylistInfo(
        id="p1", title="Mix", tracks=[track], m3u_url="/playlists/p1/stream"
    )

    assert playlist.tracks[0].stream_url == "/tracks/t1/stream"
    assert playlist.model_dump()["m3u_url"] == "/playlists/p1/stream"


def test_error_response_schema():
    assert ErrorResponse(error="track not found").model_dump() == {"error": "track not found"}
