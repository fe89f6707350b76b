"""
Track import: read tags with Mutagen, store the audio bytes, record metadata.
"""

import mimetypes
from pathlib import Path
from typing import Any, BinaryIO, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from ..streaming.blobstore import BlobStore
from .tracks import DEFAULT_CONTENT_TYPE, TrackRecord, TrackStore

AUDIO_MIME_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".opus": "audio/opus",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".wav": "audio/wav",
}


def get_mime_type(file_path: Path) -> str:
    """Pure function - deterministic MIME type detection."""
    mime = AUDIO_MIME_TYPES.get(file_path.suffix.lower())
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(str(file_path))
    return guessed or DEFAULT_CONTENT_TYPE


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                if isinstance(value, list) and value:
                    return str(value[0])
                return str(value)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def read_audio_metadata(
    file_path: Path, fileobj: Optional[BinaryIO] = None
) -> dict[str, Any]:
    """Extract title, artist, album, genre, year and duration from an audio file.

    When fileobj is given the tags are read from it and file_path only names
    the file. Unreadable files fall back to the filename as title.
    """
    metadata: dict[str, Any] = {"title": file_path.stem}

    try:
        audio_file = MutagenFile(fileobj if fileobj is not None else file_path)
    except (MutagenError, OSError) as e:
        logger.warning(f"Could not read metadata from {file_path}: {e}")
        return metadata

    if audio_file is None:
        return metadata

    # ID3 (MP3), MP4, and Vorbis/Opus tags (lowercase)
    title = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"])
    if title:
        metadata["title"] = title
    metadata["artist"] = get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"])
    metadata["album"] = get_tag_value(audio_file, ["TALB", "\xa9alb", "ALBUM", "album"])
    metadata["genre"] = get_tag_value(audio_file, ["TCON", "\xa9gen", "GENRE", "genre"])

    year_str = get_tag_value(audio_file, ["TDRC", "\xa9day", "DATE", "YEAR", "date", "year"])
    if year_str:
        try:
            metadata["year"] = int(str(year_str).split("-")[0])
        except ValueError:
            pass

    info = getattr(audio_file, "info", None)
    if info is not None:
        metadata["duration"] = getattr(info, "length", None)

    return metadata


def _store_track(
    fileobj: BinaryIO,
    filename: str,
    metadata: dict[str, Any],
    track_store: TrackStore,
    blob_store: BlobStore,
) -> TrackRecord:
    blob_handle = blob_store.put(fileobj, filename)
    try:
        total_size = blob_store.file_info(blob_handle)
        title = metadata.pop("title")
        track = track_store.create_track(title, blob_handle, total_size, **metadata)
    except Exception:
        # Don't leave an orphaned blob behind a failed metadata write
        blob_store.delete(blob_handle)
        raise

    logger.info(f"Imported {filename} as track {track.id} ({total_size} bytes)")
    return track


def _merge_metadata(
    metadata: dict[str, Any], filename: str, overrides: dict[str, Any]
) -> dict[str, Any]:
    metadata.update({k: v for k, v in overrides.items() if v is not None})
    metadata["content_type"] = get_mime_type(Path(filename))
    return metadata


def import_track(
    file_path: Path,
    track_store: TrackStore,
    blob_store: BlobStore,
    **overrides: Any,
) -> TrackRecord:
    """Store an audio file and create its track record.

    Args:
        file_path: Local audio file
        track_store: Metadata store receiving the new track
        blob_store: Blob store receiving the audio bytes
        **overrides: Metadata values taking precedence over the file's tags

    Returns:
        The created track
    """
    metadata = _merge_metadata(read_audio_metadata(file_path), file_path.name, overrides)
    with open(file_path, "rb") as f:
        return _store_track(f, file_path.name, metadata, track_store, blob_store)


def import_upload(
    fileobj: BinaryIO,
    filename: str,
    track_store: TrackStore,
    blob_store: BlobStore,
    **overrides: Any,
) -> TrackRecord:
    """Same as import_track for an uploaded, seekable file object."""
    name = Path(filename or "upload").name
    metadata = _merge_metadata(
        read_audio_metadata(Path(name), fileobj), name, overrides
    )
    fileobj.seek(0)
    return _store_track(fileobj, name, metadata, track_store, blob_store)
