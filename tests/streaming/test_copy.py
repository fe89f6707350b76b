"""Tests for the bounded copy loop."""

import io

import pytest

from music_library.core.errors import StorageIOError
from music_library.streaming.copy import copy_exactly, iter_exactly


class RecordingWriter:
    """Writer that records every write and flush."""

    def __init__(self):
        self.buffer = io.BytesIO()
        self.events: list[str] = []

    def write(self, data: bytes) -> int:
        self.events.append(f"write:{len(data)}")
        return self.buffer.write(data)

    def flush(self) -> None:
        self.events.append("flush")


class GreedyReader:
    """Ignores the requested size and returns big blocks."""

    def __init__(self, data: bytes, block: int):
        self._data = data
        self._block = block
        self._pos = 0

    def read(self, size: int) -> bytes:
        chunk = self._data[self._pos:self._pos + self._block]
        self._pos += len(chunk)
        return chunk

    def close(self) -> None:
        pass


class FailingReader:
    """Returns some data, then fails like a broken storage connection."""

    def __init__(self, data: bytes, fail_after: int):
        self._src = io.BytesIO(data)
        self._fail_after = fail_after
        self._read = 0

    def read(self, size: int) -> bytes:
        if self._read >= self._fail_after:
            raise OSError("connection reset")
        chunk = self._src.read(min(size, self._fail_after - self._read))
        self._read += len(chunk)
        return chunk

    def close(self) -> None:
        pass


@pytest.mark.parametrize("start,end", [(0, 999), (500, 999), (0, 0), (123, 456), (999, 999)])
def test_copies_exact_byte_range(audio_bytes, start, end):
    src = io.BytesIO(audio_bytes)
    src.seek(start)
    dst = RecordingWriter()

    copied = copy_exactly(dst, src, end - start + 1, chunk_size=64)

    assert copied == end - start + 1
    assert dst.buffer.getvalue() == audio_bytes[start:end + 1]


def test_flushes_after_every_chunk(audio_bytes):
    dst = RecordingWriter()
    copy_exactly(dst, io.BytesIO(audio_bytes), 100, chunk_size=32)

    assert dst.events == [
        "write:32", "flush",
        "write:32", "flush",
        "write:32", "flush",
        "write:4", "flush",
    ]


def test_never_writes_past_budget_even_when_reader_overdelivers(audio_bytes):
    dst = RecordingWriter()
    copied = copy_exactly(dst, GreedyReader(audio_bytes, block=600), 700, chunk_size=32)

    assert copied == 700
    assert dst.buffer.getvalue() == audio_bytes[:700]


def test_chunks_never_exceed_chunk_size(audio_bytes):
    chunks = list(iter_exactly(io.BytesIO(audio_bytes), 1000, chunk_size=128))
    assert all(len(c) <= 128 for c in chunks)
    assert b"".join(chunks) == audio_bytes


def test_clean_eof_ends_copy_without_error(audio_bytes):
    dst = RecordingWriter()
    copied = copy_exactly(dst, io.BytesIO(audio_bytes[:300]), 1000, chunk_size=64)

    assert copied == 300
    assert dst.buffer.getvalue() == audio_bytes[:300]


def test_read_failure_is_not_mistaken_for_eof(audio_bytes):
    dst = RecordingWriter()
    with pytest.raises(StorageIOError):
        copy_exactly(dst, FailingReader(audio_bytes, fail_after=200), 1000, chunk_size=64)

    # Bytes before the failure were delivered, nothing after
    assert dst.buffer.getvalue() == audio_bytes[:200]


def test_zero_bytes_reads_nothing():
    dst = RecordingWriter()
    assert copy_exactly(dst, io.BytesIO(b"abc"), 0) == 0
    assert dst.events == []


def test_rejects_non_positive_chunk_size():
    with pytest.raises(ValueError):
        list(iter_exactly(io.BytesIO(b"abc"), 3, chunk_size=0))
