"""
Playlists and their Extended M3U manifests.

A manifest lists one stream URL per track so any M3U-aware player can fetch
the audio through the range-streaming endpoint.
"""

import sqlite3
import uuid
from pathlib import Path
from typing import NamedTuple, Optional, Sequence

from loguru import logger

from ..core.database import get_db_connection
from ..core.errors import PlaylistNotFoundError, StorageIOError
from .tracks import TrackRecord, TrackStore

M3U_CONTENT_TYPE = "audio/x-mpegurl"


class PlaylistRecord(NamedTuple):
    id: str
    title: str
    track_ids: tuple[str, ...] = ()


class PlaylistStore:
    """SQLite-backed playlist storage with ordered track membership."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def create_playlist(self, title: str, track_ids: Sequence[str] = ()) -> PlaylistRecord:
        playlist = PlaylistRecord(id=uuid.uuid4().hex, title=title, track_ids=tuple(track_ids))
        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO playlists (id, title) VALUES (?, ?)",
                    (playlist.id, playlist.title),
                )
                conn.executemany(
                    "INSERT INTO playlist_tracks (playlist_id, track_id, position) VALUES (?, ?, ?)",
                    [(playlist.id, tid, pos) for pos, tid in enumerate(playlist.track_ids)],
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            # Foreign key failure: one of the track ids does not exist
            raise ValueError(f"Playlist {title!r} references unknown tracks") from e
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to save playlist {title!r}: {e}") from e

        logger.info(f"Created playlist {playlist.id}: {title} ({len(playlist.track_ids)} tracks)")
        return playlist

    def find_playlist_by_id(self, playlist_id: str) -> PlaylistRecord:
        """Look up a playlist with its track ids in playlist order.

        Raises:
            PlaylistNotFoundError: If no playlist has this id
        """
        try:
            with get_db_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT id, title FROM playlists WHERE id = ?", (playlist_id,)
                ).fetchone()
                if row is None:
                    raise PlaylistNotFoundError(playlist_id)
                cursor = conn.execute(
                    "SELECT track_id FROM playlist_tracks WHERE playlist_id = ? ORDER BY position",
                    (playlist_id,),
                )
                track_ids = tuple(r["track_id"] for r in cursor.fetchall())
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to load playlist {playlist_id}: {e}") from e

        return PlaylistRecord(id=row["id"], title=row["title"], track_ids=track_ids)

    def list_playlists(self) -> list[PlaylistRecord]:
        """All playlists with their track ids, oldest first."""
        try:
            with get_db_connection(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT id, title FROM playlists ORDER BY created_at, rowid"
                ).fetchall()
                members: dict[str, list[str]] = {}
                for member in conn.execute(
                    "SELECT playlist_id, track_id FROM playlist_tracks ORDER BY playlist_id, position"
                ):
                    members.setdefault(member["playlist_id"], []).append(member["track_id"])
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to list playlists: {e}") from e

        return [
            PlaylistRecord(id=row["id"], title=row["title"], track_ids=tuple(members.get(row["id"], ())))
            for row in rows
        ]

    def update_playlist(
        self,
        playlist_id: str,
        title: Optional[str] = None,
        track_ids: Optional[Sequence[str]] = None,
    ) -> PlaylistRecord:
        """Rename a playlist and/or replace its track list.

        Raises:
            PlaylistNotFoundError: If no playlist has this id
            ValueError: If track_ids references unknown tracks
        """
        playlist = self.find_playlist_by_id(playlist_id)
        if title is not None:
            playlist = playlist._replace(title=title)
        if track_ids is not None:
            playlist = playlist._replace(track_ids=tuple(track_ids))

        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute(
                    "UPDATE playlists SET title = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (playlist.title, playlist_id),
                )
                if track_ids is not None:
                    conn.execute("DELETE FROM playlist_tracks WHERE playlist_id = ?", (playlist_id,))
                    conn.executemany(
                        "INSERT INTO playlist_tracks (playlist_id, track_id, position) VALUES (?, ?, ?)",
                        [(playlist_id, tid, pos) for pos, tid in enumerate(playlist.track_ids)],
                    )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Playlist {playlist.title!r} references unknown tracks") from e
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to update playlist {playlist_id}: {e}") from e

        logger.info(f"Updated playlist {playlist_id}: {playlist.title} ({len(playlist.track_ids)} tracks)")
        return playlist

    def delete_playlist(self, playlist_id: str) -> None:
        """Delete a playlist; its tracks are untouched.

        Raises:
            PlaylistNotFoundError: If no playlist has this id
        """
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
                conn.commit()
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to delete playlist {playlist_id}: {e}") from e

        if deleted == 0:
            raise PlaylistNotFoundError(playlist_id)
        logger.info(f"Deleted playlist {playlist_id}")


def build_m3u(tracks: Sequence[TrackRecord], track_stream_base_url: str) -> str:
    """Render an Extended M3U manifest.

    Args:
        tracks: Tracks in playlist order
        track_stream_base_url: URL prefix of the tracks collection, e.g. "/api/tracks"

    Returns:
        Manifest text, newline terminated
    """
    base_url = track_stream_base_url.rstrip("/")
    lines = ["#EXTM3U"]
    for track in tracks:
        duration = int(track.duration or 0)
        label = f"{track.artist} - {track.title}" if track.artist else track.title
        lines.append(f"#EXTINF:{duration},{label}")
        lines.append(f"{base_url}/{track.id}/stream")
    return "\n".join(lines) + "\n"


def render_playlist_m3u(
    playlist_store: PlaylistStore,
    track_store: TrackStore,
    playlist_id: str,
    track_stream_base_url: str,
) -> str:
    """Load a playlist and render its manifest; a trailing '.m3u' on the id is ignored."""
    if playlist_id.endswith(".m3u"):
        playlist_id = playlist_id[: -len(".m3u")]

    playlist = playlist_store.find_playlist_by_id(playlist_id)
    tracks = track_store.get_tracks_by_ids(playlist.track_ids)
    return build_m3u(tracks, track_stream_base_url)
