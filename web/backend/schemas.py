from pydantic import BaseModel
from typing import Optional

from music_library.domain.tracks import TrackRecord


class TrackInfo(BaseModel):
    id: str
    title: str
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    duration: Optional[float] = None
    content_type: str
    total_size: Optional[int] = None
    stream_url: str

    @classmethod
    def from_record(cls, track: TrackRecord, tracks_base_url: str) -> "TrackInfo":
        return cls(
            id=track.id,
            title=track.title,
            artist=track.artist,
            album=track.album,
            genre=track.genre,
            year=track.year,
            duration=track.duration,
            content_type=track.content_type,
            total_size=track.total_size,
            stream_url=f"{tracks_base_url}/{track.id}/stream",
        )


class PlaylistInfo(BaseModel):
    id: str
    title: str
    tracks: list[TrackInfo]
    m3u_url: str


class ErrorResponse(BaseModel):
    error: str


class TrackUpdateRequest(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None


class PlaylistCreateRequest(BaseModel):
    title: str
    track_ids: list[str] = []


class PlaylistUpdateRequest(BaseModel):
    title: Optional[str] = None
    track_ids: Optional[list[str]] = None  # replaces the whole list when given
