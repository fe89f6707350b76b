"""Typed errors shared by the metadata store, blob store and streaming core.

Every error carries an ErrorKind so callers branch on the kind, never on
the message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    RANGE_NOT_SATISFIABLE = "range_not_satisfiable"
    IO = "io"


class LibraryError(Exception):
    """Base exception for music library operations."""

    kind: ErrorKind = ErrorKind.IO

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TrackNotFoundError(LibraryError):
    """Raised when a track id does not resolve to a stored track."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, track_id: str, message: str = "track not found"):
        self.track_id = track_id
        super().__init__(message)


class PlaylistNotFoundError(LibraryError):
    """Raised when a playlist id does not resolve to a stored playlist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, playlist_id: str, message: str = "playlist not found"):
        self.playlist_id = playlist_id
        super().__init__(message)


class BlobNotFoundError(LibraryError):
    """Raised when a blob handle is unknown to the blob store."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, handle: str, message: str = "audio data not found"):
        self.handle = handle
        super().__init__(message)


class RangeNotSatisfiableError(LibraryError):
    """Raised when a Range header cannot be satisfied for a blob."""

    kind = ErrorKind.RANGE_NOT_SATISFIABLE

    def __init__(self, message: str, total_size: Optional[int] = None):
        self.total_size = total_size
        super().__init__(message)


class StorageIOError(LibraryError):
    """Raised when the storage backend fails during open, skip or read."""

    kind = ErrorKind.IO
