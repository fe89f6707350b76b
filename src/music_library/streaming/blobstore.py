"""
Blob store adapters: forward-only download streams over stored audio.

Two backends implement the BlobStore protocol:
- SqliteBlobStore keeps objects as ordered chunks in the metadata database
- LocalFileBlobStore serves files below a library root directory

Readers returned by open() belong to exactly one request. The adapter never
keeps a reference to them; the caller must close() on every exit path.
"""

import re
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Protocol, Tuple

from loguru import logger

from ..core.database import connect, get_db_connection
from ..core.errors import BlobNotFoundError, StorageIOError
from ..core.path_security import resolve_blob_path

DEFAULT_BLOB_CHUNK_SIZE = 255 * 1024
DEFAULT_SKIP_CHUNK_SIZE = 64 * 1024


class BlobReader(Protocol):
    """Sequential byte source. read() returns b"" at end of data."""

    def read(self, size: int) -> bytes: ...
    def close(self) -> None: ...


class BlobStore(Protocol):
    """Storage backend for audio objects addressed by opaque handles."""

    def open(self, handle: str) -> Tuple[BlobReader, int]: ...
    def file_info(self, handle: str) -> int: ...
    def put(self, fileobj: BinaryIO, filename: str) -> str: ...
    def delete(self, handle: str) -> None: ...


def skip(reader: BlobReader, n: int, chunk_size: int = DEFAULT_SKIP_CHUNK_SIZE) -> None:
    """Advance a reader by exactly n bytes, discarding the output.

    Raises:
        StorageIOError: If the stream ends before n bytes were skipped
    """
    remaining = n
    while remaining > 0:
        data = reader.read(min(chunk_size, remaining))
        if not data:
            raise StorageIOError(
                f"failed to skip bytes: stream ended {remaining} bytes short of offset {n}"
            )
        remaining -= len(data)


class SqliteBlobReader:
    """Reads a chunked blob one stored chunk at a time."""

    def __init__(self, conn: sqlite3.Connection, blob_id: str, length: int):
        self._conn = conn
        self._blob_id = blob_id
        self._length = length
        self._next_chunk = 0
        self._position = 0
        self._buffer = memoryview(b"")
        self._closed = False
        # close() may run on the event loop while read() runs in the threadpool
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int) -> bytes:
        with self._lock:
            if self._closed:
                raise StorageIOError(f"read from closed blob reader {self._blob_id}")
            if size <= 0 or self._position >= self._length:
                return b""

            if not self._buffer:
                self._buffer = memoryview(self._fetch_chunk(self._next_chunk))
                self._next_chunk += 1

            data = self._buffer[:size].tobytes()
            self._buffer = self._buffer[len(data):]
            self._position += len(data)
            return data

    def _fetch_chunk(self, n: int) -> bytes:
        try:
            row = self._conn.execute(
                "SELECT data FROM blob_chunks WHERE blob_id = ? AND n = ?",
                (self._blob_id, n),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to read chunk {n} of blob {self._blob_id}: {e}") from e

        # The blob row promises more bytes, so a missing chunk is corruption, not EOF
        if row is None or not row["data"]:
            raise StorageIOError(
                f"blob {self._blob_id} is missing chunk {n} "
                f"({self._position} of {self._length} bytes read)"
            )
        return bytes(row["data"])

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._buffer = memoryview(b"")
            self._conn.close()


class SqliteBlobStore:
    """Chunked object store inside the SQLite metadata database."""

    def __init__(self, db_path: Path, chunk_size: int = DEFAULT_BLOB_CHUNK_SIZE):
        self.db_path = db_path
        self.chunk_size = chunk_size

    def open(self, handle: str) -> Tuple[SqliteBlobReader, int]:
        try:
            conn = connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageIOError(f"cannot open blob store: {e}") from e

        try:
            row = conn.execute(
                "SELECT length FROM blobs WHERE id = ?", (handle,)
            ).fetchone()
        except sqlite3.Error as e:
            conn.close()
            raise StorageIOError(f"cannot open blob {handle}: {e}") from e

        if row is None:
            conn.close()
            raise BlobNotFoundError(handle)

        return SqliteBlobReader(conn, handle, row["length"]), row["length"]

    def file_info(self, handle: str) -> int:
        try:
            with get_db_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT length FROM blobs WHERE id = ?", (handle,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"cannot stat blob {handle}: {e}") from e

        if row is None:
            raise BlobNotFoundError(handle)
        return row["length"]

    def put(self, fileobj: BinaryIO, filename: str) -> str:
        blob_id = uuid.uuid4().hex
        length = 0
        try:
            with get_db_connection(self.db_path) as conn:
                # Parent row first so chunk foreign keys resolve; length is fixed up below
                conn.execute(
                    "INSERT INTO blobs (id, filename, length, chunk_size) VALUES (?, ?, 0, ?)",
                    (blob_id, filename, self.chunk_size),
                )
                n = 0
                while True:
                    data = fileobj.read(self.chunk_size)
                    if not data:
                        break
                    conn.execute(
                        "INSERT INTO blob_chunks (blob_id, n, data) VALUES (?, ?, ?)",
                        (blob_id, n, sqlite3.Binary(data)),
                    )
                    length += len(data)
                    n += 1
                conn.execute(
                    "UPDATE blobs SET length = ? WHERE id = ?", (length, blob_id)
                )
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageIOError(f"failed to store {filename}: {e}") from e

        logger.info(f"Stored blob {blob_id} ({filename}, {length} bytes)")
        return blob_id

    def delete(self, handle: str) -> None:
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM blobs WHERE id = ?", (handle,))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageIOError(f"failed to delete blob {handle}: {e}") from e

        if cursor.rowcount == 0:
            raise BlobNotFoundError(handle)
        logger.info(f"Deleted blob {handle}")


class FileBlobReader:
    """Sequential reader over a file in the library root."""

    def __init__(self, fileobj: BinaryIO, path: Path):
        self._file = fileobj
        self._path = path
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def read(self, size: int) -> bytes:
        with self._lock:
            try:
                return self._file.read(size)
            except (OSError, ValueError) as e:
                raise StorageIOError(f"failed to read {self._path.name}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._file.close()


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._ -]")


class LocalFileBlobStore:
    """Blob store over plain files; handles are paths relative to the root."""

    def __init__(self, library_root: Path, upload_dir: str = "uploads"):
        self.library_root = library_root
        self.upload_dir = upload_dir

    def _resolve(self, handle: str) -> Path:
        path = resolve_blob_path(handle, self.library_root)
        if path is None:
            logger.warning(f"Blocked access outside library root: {handle!r}")
            raise BlobNotFoundError(handle)
        if not path.is_file():
            raise BlobNotFoundError(handle)
        return path

    def open(self, handle: str) -> Tuple[FileBlobReader, int]:
        path = self._resolve(handle)
        try:
            fileobj = open(path, "rb")
            total_size = path.stat().st_size
        except FileNotFoundError as e:
            raise BlobNotFoundError(handle) from e
        except OSError as e:
            raise StorageIOError(f"cannot open {path.name}: {e}") from e
        return FileBlobReader(fileobj, path), total_size

    def file_info(self, handle: str) -> int:
        path = self._resolve(handle)
        try:
            return path.stat().st_size
        except OSError as e:
            raise StorageIOError(f"cannot stat {path.name}: {e}") from e

    def put(self, fileobj: BinaryIO, filename: str) -> str:
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", Path(filename).name) or "track"
        handle = f"{self.upload_dir}/{uuid.uuid4().hex}_{safe_name}"
        target = self.library_root / handle
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                while True:
                    data = fileobj.read(DEFAULT_BLOB_CHUNK_SIZE)
                    if not data:
                        break
                    out.write(data)
        except OSError as e:
            raise StorageIOError(f"failed to store {filename}: {e}") from e

        logger.info(f"Stored file blob {handle}")
        return handle

    def delete(self, handle: str) -> None:
        path = self._resolve(handle)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise BlobNotFoundError(handle) from e
        except OSError as e:
            raise StorageIOError(f"failed to delete {path.name}: {e}") from e
        logger.info(f"Deleted file blob {handle}")


def create_blob_store(
    backend: str,
    db_path: Path,
    library_root: Optional[Path] = None,
    chunk_size: int = DEFAULT_BLOB_CHUNK_SIZE,
) -> BlobStore:
    """Build the configured blob store backend."""
    if backend == "sqlite":
        return SqliteBlobStore(db_path, chunk_size=chunk_size)
    if backend == "local":
        if library_root is None:
            raise ValueError("The 'local' blob backend requires a library root")
        return LocalFileBlobStore(library_root)
    raise ValueError(f"Unknown blob backend: {backend!r}")
