"""Bounded copy from a blob reader to a response writer."""

from typing import Iterator, Protocol

from loguru import logger

from ..core.errors import LibraryError, StorageIOError
from .blobstore import BlobReader

DEFAULT_CHUNK_SIZE = 32 * 1024


class FlushingWriter(Protocol):
    def write(self, data: bytes) -> object: ...
    def flush(self) -> None: ...


def iter_exactly(
    src: BlobReader, n: int, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield at most n bytes from src in chunks of at most chunk_size.

    An empty read is a clean end of data and stops the iteration early.
    A failing read raises StorageIOError rather than looking like EOF.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    copied = 0
    while copied < n:
        remaining = n - copied
        try:
            data = src.read(min(chunk_size, remaining))
        except LibraryError:
            raise
        except OSError as e:
            raise StorageIOError(f"read failed after {copied} of {n} bytes: {e}") from e

        if not data:
            logger.warning(f"Source ended after {copied} of {n} bytes")
            return

        # Never hand out more than the declared range, whatever the reader returned
        if len(data) > remaining:
            data = data[:remaining]

        copied += len(data)
        yield data


def copy_exactly(
    dst: FlushingWriter,
    src: BlobReader,
    n: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy exactly n bytes from src to dst, flushing after every chunk.

    Returns:
        Number of bytes written; less than n only if src hit end of data
    """
    copied = 0
    for chunk in iter_exactly(src, n, chunk_size):
        dst.write(chunk)
        dst.flush()
        copied += len(chunk)
    return copied
