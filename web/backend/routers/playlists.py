from fastapi import APIRouter, Depends, HTTPException, Response

from music_library.core.config import Config
from music_library.domain.playlists import (
    M3U_CONTENT_TYPE,
    PlaylistRecord,
    PlaylistStore,
    render_playlist_m3u,
)
from music_library.domain.tracks import TrackStore

from ..deps import get_config, get_playlist_store, get_track_store, tracks_base_url
from ..schemas import (
    ErrorResponse,
    PlaylistCreateRequest,
    PlaylistInfo,
    PlaylistUpdateRequest,
    TrackInfo,
)

router = APIRouter()

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _playlist_info(playlist: PlaylistRecord, track_store: TrackStore, config: Config) -> PlaylistInfo:
    base_url = tracks_base_url(config)
    tracks = track_store.get_tracks_by_ids(playlist.track_ids)
    return PlaylistInfo(
        id=playlist.id,
        title=playlist.title,
        tracks=[TrackInfo.from_record(t, base_url) for t in tracks],
        m3u_url=f"{config.server.api_prefix}/playlists/{playlist.id}/stream",
    )


@router.get("/playlists", response_model=list[PlaylistInfo])
def list_playlists(
    playlist_store: PlaylistStore = Depends(get_playlist_store),
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    return [_playlist_info(p, track_store, config) for p in playlist_store.list_playlists()]


@router.post("/playlists", response_model=PlaylistInfo, status_code=201, responses=ERROR_RESPONSES)
def create_playlist(
    request: PlaylistCreateRequest,
    playlist_store: PlaylistStore = Depends(get_playlist_store),
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    try:
        playlist = playlist_store.create_playlist(request.title, request.track_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _playlist_info(playlist, track_store, config)


@router.get("/playlists/{playlist_id}", response_model=PlaylistInfo, responses=ERROR_RESPONSES)
def get_playlist(
    playlist_id: str,
    playlist_store: PlaylistStore = Depends(get_playlist_store),
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    playlist = playlist_store.find_playlist_by_id(playlist_id)
    return _playlist_info(playlist, track_store, config)


@router.patch("/playlists/{playlist_id}", response_model=PlaylistInfo, responses=ERROR_RESPONSES)
def update_playlist(
    playlist_id: str,
    request: PlaylistUpdateRequest,
    playlist_store: PlaylistStore = Depends(get_playlist_store),
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    """Rename a playlist or replace its tracks."""
    try:
        playlist = playlist_store.update_playlist(
            playlist_id, title=request.title, track_ids=request.track_ids
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _playlist_info(playlist, track_store, config)


@router.delete("/playlists/{playlist_id}", status_code=204, responses=ERROR_RESPONSES)
def delete_playlist(
    playlist_id: str,
    playlist_store: PlaylistStore = Depends(get_playlist_store),
):
    """Delete a playlist; its tracks stay in the library."""
    playlist_store.delete_playlist(playlist_id)
    return Response(status_code=204)


@router.get("/playlists/{playlist_id}/stream", responses=ERROR_RESPONSES)
def stream_playlist_m3u(
    playlist_id: str,
    playlist_store: PlaylistStore = Depends(get_playlist_store),
    track_store: TrackStore = Depends(get_track_store),
    config: Config = Depends(get_config),
):
    """Serve the playlist as an Extended M3U manifest of track stream URLs."""
    content = render_playlist_m3u(
        playlist_store, track_store, playlist_id, tracks_base_url(config)
    )
    return Response(
        content=content,
        media_type=M3U_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="playlist_{playlist_id.removesuffix(".m3u")}.m3u"'
        },
    )
