"""
Track metadata store.

Tracks are created on import and referenced by the streaming core, which only
reads the title, content type, blob handle and size.
"""

import sqlite3
import uuid
from pathlib import Path
from typing import Any, NamedTuple, Optional, Sequence

from loguru import logger

from ..core.database import get_db_connection
from ..core.errors import StorageIOError, TrackNotFoundError

DEFAULT_CONTENT_TYPE = "audio/mpeg"


class TrackRecord(NamedTuple):
    """A stored track and the reference to its audio blob."""

    id: str
    title: str
    blob_handle: str
    total_size: Optional[int] = None  # None when only the blob store knows it
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    duration: Optional[float] = None  # in seconds
    content_type: str = DEFAULT_CONTENT_TYPE


def _row_to_track(row: sqlite3.Row) -> TrackRecord:
    return TrackRecord(
        id=row["id"],
        title=row["title"],
        blob_handle=row["blob_handle"],
        total_size=row["total_size"],
        artist=row["artist"],
        album=row["album"],
        genre=row["genre"],
        year=row["year"],
        duration=row["duration"],
        content_type=row["content_type"] or DEFAULT_CONTENT_TYPE,
    )


class TrackStore:
    """SQLite-backed metadata store for tracks."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def find_track_by_id(self, track_id: str) -> TrackRecord:
        """Look up a track.

        Raises:
            TrackNotFoundError: If no track has this id
        """
        try:
            with get_db_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM tracks WHERE id = ?", (track_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to load track {track_id}: {e}") from e

        if row is None:
            raise TrackNotFoundError(track_id)
        return _row_to_track(row)

    def get_tracks_by_ids(self, track_ids: Sequence[str]) -> list[TrackRecord]:
        """Batch-fetch tracks, returned in the order of track_ids.

        Unknown ids are skipped.
        """
        if not track_ids:
            return []

        placeholders = ",".join("?" * len(track_ids))
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute(
                    f"SELECT * FROM tracks WHERE id IN ({placeholders})",
                    list(track_ids),
                )
                tracks_by_id = {row["id"]: _row_to_track(row) for row in cursor.fetchall()}
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to load tracks: {e}") from e

        return [tracks_by_id[tid] for tid in track_ids if tid in tracks_by_id]

    def create_track(
        self,
        title: str,
        blob_handle: str,
        total_size: Optional[int] = None,
        **fields: Any,
    ) -> TrackRecord:
        """Insert a new track and return it.

        Args:
            title: Display title, also used as the streamed filename
            blob_handle: Handle returned by the blob store
            total_size: Blob length in bytes, if known
            **fields: Optional artist, album, genre, year, duration, content_type
        """
        allowed = {"artist", "album", "genre", "year", "duration", "content_type"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown track fields: {sorted(unknown)}")

        track = TrackRecord(
            id=uuid.uuid4().hex,
            title=title,
            blob_handle=blob_handle,
            total_size=total_size,
            **fields,
        )
        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO tracks (id, title, artist, album, genre, year, duration,
                                        blob_handle, total_size, content_type)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        track.id,
                        track.title,
                        track.artist,
                        track.album,
                        track.genre,
                        track.year,
                        track.duration,
                        track.blob_handle,
                        track.total_size,
                        track.content_type,
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to save track {title!r}: {e}") from e

        logger.info(f"Created track {track.id}: {track.title}")
        return track

    def delete_track(self, track_id: str) -> TrackRecord:
        """Delete a track record and return what was deleted.

        Raises:
            TrackNotFoundError: If no track has this id
        """
        track = self.find_track_by_id(track_id)
        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute("DELETE FROM tracks WHERE id = ?", (track_id,))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to delete track {track_id}: {e}") from e

        logger.info(f"Deleted track {track_id}")
        return track

    def list_tracks(self) -> list[TrackRecord]:
        """All tracks, oldest first."""
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute("SELECT * FROM tracks ORDER BY created_at, rowid")
                return [_row_to_track(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to list tracks: {e}") from e

    def update_track(self, track_id: str, **fields: Any) -> TrackRecord:
        """Change descriptive fields of a track; None values are left untouched.

        Raises:
            TrackNotFoundError: If no track has this id
            ValueError: For fields that cannot be edited
        """
        editable = {"title", "artist", "album", "genre", "year"}
        unknown = set(fields) - editable
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")

        track = self.find_track_by_id(track_id)
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            return track

        assignments = ", ".join(f"{column} = ?" for column in changes)
        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute(
                    f"UPDATE tracks SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*changes.values(), track_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to update track {track_id}: {e}") from e

        logger.info(f"Updated track {track_id}: {sorted(changes)}")
        return track._replace(**changes)

    def set_track_size(self, track_id: str, total_size: int) -> TrackRecord:
        """Record the blob length for a track created without one.

        Raises:
            TrackNotFoundError: If no track has this id
        """
        if total_size < 0:
            raise ValueError("total_size cannot be negative")

        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute(
                    "UPDATE tracks SET total_size = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (total_size, track_id),
                )
                conn.commit()
                updated = cursor.rowcount
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to update size of track {track_id}: {e}") from e

        if updated == 0:
            raise TrackNotFoundError(track_id)
        return self.find_track_by_id(track_id)
