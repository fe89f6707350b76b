"""
Track streaming orchestration.

open_stream() walks a request through its states:

    ResolveMetadata -> ParseRange -> OpenBlob -> SkipToStart -> StreamBody -> Closed

Every failure before StreamBody raises a typed LibraryError and leaves no
reader open. Once a TrackStream is returned the caller owns its reader and
must either exhaust iter_body() or call close().
"""

import threading
import unicodedata
from typing import Iterator, Optional
from urllib.parse import quote

from loguru import logger

from ..core.errors import StorageIOError
from ..domain.tracks import TrackRecord, TrackStore
from .blobstore import BlobReader, BlobStore, skip
from .copy import DEFAULT_CHUNK_SIZE, FlushingWriter, copy_exactly, iter_exactly
from .ranges import RangeSpec, parse_range


def content_disposition(title: str, disposition: str = "inline") -> str:
    """Build a Content-Disposition value carrying the track title.

    Non-ASCII titles get an ASCII fallback plus an RFC 5987 filename*.
    """
    cleaned = " ".join(title.split()) or "track"
    escaped = cleaned.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'{disposition}; filename="{escaped}"'

    fallback = (
        unicodedata.normalize("NFKD", escaped).encode("ascii", "ignore").decode("ascii")
    ) or "track"
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(cleaned)}"


class TrackStream:
    """An opened, positioned stream for one request."""

    def __init__(
        self,
        track: TrackRecord,
        range_spec: RangeSpec,
        total_size: int,
        reader: BlobReader,
        status_code: int = 206,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.track = track
        self.range_spec = range_spec
        self.total_size = total_size
        self.status_code = status_code
        self.chunk_size = chunk_size
        self._reader = reader
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def bytes_remaining(self) -> int:
        return self.range_spec.length

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": self.track.content_type,
            "Accept-Ranges": "bytes",
            "Content-Disposition": content_disposition(self.track.title),
            "Content-Length": str(self.range_spec.length),
        }
        if self.status_code == 206:
            headers["Content-Range"] = self.range_spec.content_range(self.total_size)
        return headers

    def iter_body(self) -> Iterator[bytes]:
        """Yield the body chunk by chunk; the reader is closed when this ends."""
        try:
            yield from iter_exactly(self._reader, self.range_spec.length, self.chunk_size)
        finally:
            self.close()

    def copy_to(self, dst: FlushingWriter) -> int:
        """Write the body to a file-like destination, flushing each chunk."""
        try:
            return copy_exactly(dst, self._reader, self.range_spec.length, self.chunk_size)
        finally:
            self.close()

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._reader.close()
        logger.debug(f"Closed stream for track {self.track.id}")

    def __enter__(self) -> "TrackStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class TrackStreamer:
    """Resolves tracks and opens range-positioned blob streams.

    The metadata and blob stores are injected once at startup and shared by
    all requests; nothing else is shared between streams.
    """

    def __init__(
        self,
        track_store: TrackStore,
        blob_store: BlobStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        always_partial: bool = True,
    ):
        self.track_store = track_store
        self.blob_store = blob_store
        self.chunk_size = chunk_size
        self.always_partial = always_partial

    def resolve_size(self, track: TrackRecord) -> int:
        if track.total_size is not None:
            return track.total_size
        # Metadata predates size tracking; ask the blob store without opening a stream
        return self.blob_store.file_info(track.blob_handle)

    def open_stream(self, track_id: str, range_header: Optional[str] = None) -> TrackStream:
        """Open a stream for a track, positioned at the requested range.

        Raises:
            TrackNotFoundError: Unknown track id
            RangeNotSatisfiableError: Malformed or out-of-bounds Range header
            BlobNotFoundError: Track points at a missing blob
            StorageIOError: Backend failure while opening or skipping
        """
        track = self.track_store.find_track_by_id(track_id)
        total_size = self.resolve_size(track)

        range_spec = parse_range(range_header, total_size)

        reader, blob_size = self.blob_store.open(track.blob_handle)
        try:
            if blob_size != total_size:
                logger.warning(
                    f"Track {track.id} metadata says {total_size} bytes, "
                    f"blob has {blob_size}"
                )
            # Headers promise end-start+1 bytes; refuse before sending them
            if blob_size < range_spec.end + 1:
                raise StorageIOError(
                    f"audio data for track {track.id} is truncated "
                    f"({blob_size} of {total_size} bytes)"
                )
            if range_spec.start > 0:
                skip(reader, range_spec.start)
        except BaseException:
            reader.close()
            raise

        partial = range_spec.is_partial or self.always_partial
        logger.info(
            f"Streaming track {track.id} ({track.title}): "
            f"bytes {range_spec.start}-{range_spec.end}/{total_size}"
            f"{'' if range_spec.is_partial else ' (no Range header)'}"
        )
        return TrackStream(
            track=track,
            range_spec=range_spec,
            total_size=total_size,
            reader=reader,
            status_code=206 if partial else 200,
            chunk_size=self.chunk_size,
        )
