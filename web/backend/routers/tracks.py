from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from loguru import logger

from music_library.core.config import Config
from music_library.core.errors import BlobNotFoundError
from music_library.domain.importer import import_upload
from music_library.domain.tracks import TrackStore
from music_library.streaming import BlobStore, TrackStreamer

from ..deps import get_blob_store, get_config, get_streamer, get_track_store, tracks_base_url
from ..responses import TrackStreamResponse
from ..schemas import ErrorResponse, TrackInfo, TrackUpdateRequest

router = APIRouter()

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    416: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.get("/tracks", response_model=list[TrackInfo])
def list_tracks(
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    base_url = tracks_base_url(config)
    return [TrackInfo.from_record(t, base_url) for t in track_store.list_tracks()]


@router.post("/tracks", response_model=TrackInfo, status_code=201, responses={500: {"model": ErrorResponse}})
def upload_track(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    artist: Optional[str] = Form(None),
    album: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    year: Optional[int] = Form(None),
    track_store: TrackStore = Depends(get_track_store),
    blob_store: BlobStore = Depends(get_blob_store),
    config: Config = Depends(get_config),
):
    """Upload an audio file; form fields override the file's own tags."""
    track = import_upload(
        file.file,
        file.filename or "upload",
        track_store,
        blob_store,
        title=title,
        artist=artist,
        album=album,
        genre=genre,
        year=year,
    )
    return TrackInfo.from_record(track, tracks_base_url(config))


@router.get("/tracks/{track_id}", response_model=TrackInfo, responses=ERROR_RESPONSES)
def get_track(
    track_id: str,
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    track = track_store.find_track_by_id(track_id)
    return TrackInfo.from_record(track, tracks_base_url(config))


@router.patch("/tracks/{track_id}", response_model=TrackInfo, responses=ERROR_RESPONSES)
def update_track(
    track_id: str,
    request: TrackUpdateRequest,
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    """Edit descriptive fields; omitted fields keep their value."""
    track = track_store.update_track(track_id, **request.model_dump())
    return TrackInfo.from_record(track, tracks_base_url(config))


@router.get("/tracks/{track_id}/stream", responses=ERROR_RESPONSES)
def stream_audio(
    track_id: str,
    request: Request,
    streamer: TrackStreamer = Depends(get_streamer),
):
    """Stream a track's audio with HTTP Range support for seeking.

    Typed errors from open_stream (404/416/500) are rendered by the app's
    LibraryError handler before any body bytes are sent.
    """
    stream = streamer.open_stream(track_id, request.headers.get("range"))
    return TrackStreamResponse(stream)


@router.delete("/tracks/{track_id}", status_code=204, responses=ERROR_RESPONSES)
def delete_track(
    track_id: str,
    track_store: TrackStore = Depends(get_track_store),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Delete a track and its stored audio."""
    track = track_store.delete_track(track_id)
    try:
        blob_store.delete(track.blob_handle)
    except BlobNotFoundError:
        logger.warning(f"Track {track_id} pointed at missing blob {track.blob_handle}")
    return Response(status_code=204)
