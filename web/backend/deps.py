from fastapi import Request

from music_library.core.config import Config
from music_library.domain.playlists import PlaylistStore
from music_library.domain.tracks import TrackStore
from music_library.streaming import BlobStore, TrackStreamer


def get_config(request: Request) -> Config:
    """FastAPI dependency for configuration."""
    return request.app.state.config


def get_track_store(request: Request) -> TrackStore:
    """FastAPI dependency for the track metadata store."""
    return request.app.state.track_store


def get_playlist_store(request: Request) -> PlaylistStore:
    """FastAPI dependency for the playlist store."""
    return request.app.state.playlist_store


def get_blob_store(request: Request) -> BlobStore:
    """FastAPI dependency for the audio blob store."""
    return request.app.state.blob_store


def get_streamer(request: Request) -> TrackStreamer:
    """FastAPI dependency for the streaming orchestrator."""
    return request.app.state.streamer


def tracks_base_url(config: Config) -> str:
    """URL prefix of the tracks collection, used to build stream links."""
    return f"{config.server.api_prefix}/tracks"
