"""Core infrastructure layer - no domain or streaming dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Database setup (SQLite)
- Logging (Loguru)
- Typed errors shared across layers
"""

from .config import (
    Config,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_database_path,
    create_default_config,
    ensure_directories,
)

from .database import connect, get_db_connection, init_database

from .errors import (
    ErrorKind,
    LibraryError,
    TrackNotFoundError,
    PlaylistNotFoundError,
    BlobNotFoundError,
    RangeNotSatisfiableError,
    StorageIOError,
)

from .logging import setup_logging

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_database_path",
    "create_default_config",
    "ensure_directories",
    # Database
    "connect",
    "get_db_connection",
    "init_database",
    # Errors
    "ErrorKind",
    "LibraryError",
    "TrackNotFoundError",
    "PlaylistNotFoundError",
    "BlobNotFoundError",
    "RangeNotSatisfiableError",
    "StorageIOError",
    # Logging
    "setup_logging",
]
