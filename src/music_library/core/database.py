"""
SQLite database setup for track metadata, playlists and chunked audio blobs
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

# Database schema version for migrations
SCHEMA_VERSION = 1


def connect(db_path: Path, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open a connection with row access by column name and WAL enabled."""
    # Timeout of 30s covers large blob uploads holding the write lock
    conn = sqlite3.connect(db_path, timeout=30.0, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def get_db_connection(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper cleanup."""
    conn = connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


def init_database(db_path: Path) -> None:
    """Initialize the database with required tables."""
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        # Track metadata; total_size may be NULL when only the blob store knows it
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tracks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                artist TEXT,
                album TEXT,
                genre TEXT,
                year INTEGER,
                duration REAL,
                blob_handle TEXT NOT NULL,
                total_size INTEGER,
                content_type TEXT NOT NULL DEFAULT 'audio/mpeg',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS playlists (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS playlist_tracks (
                playlist_id TEXT NOT NULL,
                track_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                FOREIGN KEY (playlist_id) REFERENCES playlists (id) ON DELETE CASCADE,
                FOREIGN KEY (track_id) REFERENCES tracks (id) ON DELETE CASCADE,
                PRIMARY KEY (playlist_id, position)
            )
        """)

        # Chunked object store: one row per object, ordered chunks keyed by n
        conn.execute("""
            CREATE TABLE IF NOT EXISTS blobs (
                id TEXT PRIMARY KEY,
                filename TEXT,
                length INTEGER NOT NULL,
                chunk_size INTEGER NOT NULL,
                uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS blob_chunks (
                blob_id TEXT NOT NULL,
                n INTEGER NOT NULL,
                data BLOB NOT NULL,
                FOREIGN KEY (blob_id) REFERENCES blobs (id) ON DELETE CASCADE,
                PRIMARY KEY (blob_id, n)
            )
        """)

        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_playlist_tracks_track_id ON playlist_tracks (track_id)"
        )

        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_version")
        row = cursor.fetchone()
        if row["version"] is None:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )

        conn.commit()

    logger.info(f"Database ready at {db_path} (schema v{SCHEMA_VERSION})")
