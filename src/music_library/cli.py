"""
Music Library CLI - database setup, track import and the API server
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from music_library.core.config import (
    Config,
    create_default_config,
    ensure_directories,
    get_config_path,
    get_database_path,
    load_config,
)
from music_library.core.database import init_database
from music_library.core.errors import LibraryError
from music_library.core.logging import setup_logging

# Project root detection (where pyproject.toml exists)
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _build_stores(config: Config):
    from music_library.domain.playlists import PlaylistStore
    from music_library.domain.tracks import TrackStore
    from music_library.streaming import create_blob_store

    db_path = get_database_path(config)
    init_database(db_path)
    library_root = config.storage.library_root
    blob_store = create_blob_store(
        config.storage.blob_backend,
        db_path,
        library_root=Path(library_root) if library_root else None,
        chunk_size=config.storage.blob_chunk_size,
    )
    return TrackStore(db_path), PlaylistStore(db_path), blob_store


def run_init(config_path: Optional[Path]) -> int:
    """Write a default config file (if missing) and create the database."""
    ensure_directories()
    path = config_path or get_config_path()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(create_default_config(), encoding="utf-8")
        print(f"Created default configuration at: {path}")

    config = load_config(path)
    db_path = get_database_path(config)
    init_database(db_path)
    print(f"Database ready at: {db_path}")
    return 0


def run_import(config: Config, args: argparse.Namespace) -> int:
    """Import one or more audio files."""
    from music_library.domain.importer import import_track

    track_store, _, blob_store = _build_stores(config)
    failures = 0
    for file_arg in args.files:
        file_path = Path(file_arg).expanduser()
        if not file_path.is_file():
            print(f"✗ Not a file: {file_path}", file=sys.stderr)
            failures += 1
            continue
        try:
            track = import_track(
                file_path,
                track_store,
                blob_store,
                title=args.title,
                artist=args.artist,
                album=args.album,
                genre=args.genre,
                year=args.year,
            )
        except (LibraryError, OSError) as e:
            logger.exception(f"Import failed for {file_path}")
            print(f"✗ {file_path.name}: {e}", file=sys.stderr)
            failures += 1
            continue
        print(f"✓ {file_path.name} → track {track.id} ({track.total_size} bytes)")

    return 1 if failures else 0


def run_create_playlist(config: Config, args: argparse.Namespace) -> int:
    """Create a playlist from existing track ids."""
    _, playlist_store, _ = _build_stores(config)
    try:
        playlist = playlist_store.create_playlist(args.title, args.track_ids)
    except (ValueError, LibraryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"✓ Playlist {playlist.id}: {playlist.title} ({len(playlist.track_ids)} tracks)")
    return 0


def run_backfill_sizes(config: Config) -> int:
    """Record blob sizes for tracks whose metadata has none."""
    track_store, _, blob_store = _build_stores(config)
    updated = 0
    for track in track_store.list_tracks():
        if track.total_size is not None:
            continue
        try:
            size = blob_store.file_info(track.blob_handle)
        except LibraryError as e:
            print(f"✗ {track.title} ({track.id}): {e}", file=sys.stderr)
            continue
        track_store.set_track_size(track.id, size)
        updated += 1
    print(f"✓ Recorded sizes for {updated} tracks")
    return 0


def run_serve(config: Config, args: argparse.Namespace) -> int:
    """Run the API with uvicorn."""
    import uvicorn

    # The app factory loads its own config; point it at the same file
    if args.config:
        os.environ["MUSIC_LIBRARY_CONFIG"] = str(args.config.expanduser())

    uvicorn.run(
        "web.backend.main:create_app",
        factory=True,
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        reload=args.reload,
        app_dir=str(PROJECT_ROOT),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Music Library - audio storage and range streaming",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml")

    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    subparsers.add_parser("init", help="Create default config and database")

    import_parser = subparsers.add_parser("import", help="Import audio files")
    import_parser.add_argument("files", nargs="+", help="Audio files to import")
    import_parser.add_argument("--title", help="Override title (single file imports)")
    import_parser.add_argument("--artist", help="Override artist")
    import_parser.add_argument("--album", help="Override album")
    import_parser.add_argument("--genre", help="Override genre")
    import_parser.add_argument("--year", type=int, help="Override release year")

    playlist_parser = subparsers.add_parser("create-playlist", help="Create a playlist")
    playlist_parser.add_argument("title", help="Playlist title")
    playlist_parser.add_argument("track_ids", nargs="*", help="Track ids in play order")

    subparsers.add_parser(
        "backfill-sizes", help="Store blob sizes for tracks missing them"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default from config)")
    serve_parser.add_argument("--port", type=int, help="Port (default from config)")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes (development)"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the music-library command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.subcommand == "init":
        sys.exit(run_init(args.config))

    if args.subcommand == "import" and args.title and len(args.files) > 1:
        parser.error("--title can only be used when importing a single file")

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    if args.subcommand == "import":
        sys.exit(run_import(config, args))
    elif args.subcommand == "create-playlist":
        sys.exit(run_create_playlist(config, args))
    elif args.subcommand == "backfill-sizes":
        sys.exit(run_backfill_sizes(config))
    elif args.subcommand == "serve":
        sys.exit(run_serve(config, args))


if __name__ == "__main__":
    main()
