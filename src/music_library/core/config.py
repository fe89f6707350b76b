"""
Configuration management for the music library backend
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger


@dataclass
class ServerConfig:
    """Configuration for the HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8080
    api_prefix: str = ""  # e.g. "/api"
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )


@dataclass
class StorageConfig:
    """Configuration for the metadata database and blob store."""

    database_path: Optional[str] = None  # default: <data dir>/music_library.db
    blob_backend: str = "sqlite"  # 'sqlite' or 'local'
    library_root: Optional[str] = None  # required for the 'local' backend
    blob_chunk_size: int = 255 * 1024  # bytes per stored chunk (sqlite backend)

    def validate(self) -> None:
        """Validate storage configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        valid_backends = {"sqlite", "local"}
        if self.blob_backend not in valid_backends:
            raise ValueError(
                f"Invalid blob backend: {self.blob_backend!r}. "
                f"Valid backends are: {valid_backends}"
            )
        if self.blob_backend == "local" and not self.library_root:
            raise ValueError("The 'local' blob backend requires storage.library_root")
        if self.blob_chunk_size <= 0:
            raise ValueError("storage.blob_chunk_size must be positive")


@dataclass
class StreamingConfig:
    """Configuration for audio streaming responses."""

    chunk_size: int = 32 * 1024  # bytes per read/flush
    always_partial: bool = True  # answer 206 even without a Range header

    def validate(self) -> None:
        """Validate streaming configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.chunk_size <= 0:
            raise ValueError("streaming.chunk_size must be positive")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-library/music-library.log)
    )
    rotation: str = "10 MB"
    retention: int = 5  # Number of rotated files to keep
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.storage.validate()
        self.streaming.validate()


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-library"
    return Path.home() / ".config" / "music-library"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-library"
    return Path.home() / ".local" / "share" / "music-library"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in the project root, detected via pyproject.toml."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            return config_path if config_path.exists() else None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks in the following order:
    1. MUSIC_LIBRARY_CONFIG environment variable
    2. config.toml in the project root (detected via pyproject.toml) - for development
    3. config.toml in the current working directory
    4. XDG_CONFIG_HOME/music-library (or ~/.config/music-library)
    """
    env_config = os.environ.get("MUSIC_LIBRARY_CONFIG")
    if env_config:
        return Path(env_config).expanduser()

    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_database_path(config: Config) -> Path:
    """Resolve the SQLite database path for a configuration."""
    if config.storage.database_path:
        return Path(config.storage.database_path).expanduser()
    return get_data_dir() / "music_library.db"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Library Configuration

[server]
host = "127.0.0.1"
port = 8080
# Prefix for every route, e.g. "/api"
api_prefix = ""
allowed_origins = ["http://localhost:3000"]

[storage]
# SQLite database holding track metadata (and audio when blob_backend = "sqlite")
# database_path = "~/.local/share/music-library/music_library.db"

# Where audio bytes live: "sqlite" (chunked blobs) or "local" (files under library_root)
blob_backend = "sqlite"
# library_root = "~/Music"

# Size of each stored chunk for the sqlite backend
blob_chunk_size = 261120

[streaming]
# Bytes read and flushed to the client per iteration
chunk_size = 32768

# Answer 206 with Content-Range even when the client sent no Range header
always_partial = true

[logging]
level = "INFO"
rotation = "10 MB"
retention = 5
console_output = false
"""


def _apply_env_overrides(config: Config) -> None:
    """Override TOML values with environment variables when present."""
    db_path = os.environ.get("MUSIC_LIBRARY_DB_PATH")
    if db_path:
        config.storage.database_path = db_path

    blob_backend = os.environ.get("MUSIC_LIBRARY_BLOB_BACKEND")
    if blob_backend:
        config.storage.blob_backend = blob_backend

    library_root = os.environ.get("MUSIC_LIBRARY_ROOT")
    if library_root:
        config.storage.library_root = library_root

    allowed_origins = os.environ.get("ALLOWED_ORIGINS")
    if allowed_origins:
        config.server.allowed_origins = allowed_origins.split(",")

    log_level = os.environ.get("LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, falling back to defaults.

    Environment variables override TOML values:
    - MUSIC_LIBRARY_DB_PATH
    - MUSIC_LIBRARY_BLOB_BACKEND
    - MUSIC_LIBRARY_ROOT
    - ALLOWED_ORIGINS (comma separated)
    - LOG_LEVEL

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()
    config = Config()

    if config_path.exists():
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        if "server" in toml_data:
            server_data = toml_data["server"]
            config.server = ServerConfig(
                host=server_data.get("host", config.server.host),
                port=server_data.get("port", config.server.port),
                api_prefix=server_data.get(
                    "api_prefix", config.server.api_prefix
                ).rstrip("/"),
                allowed_origins=server_data.get(
                    "allowed_origins", config.server.allowed_origins
                ),
            )

        if "storage" in toml_data:
            storage_data = toml_data["storage"]
            database_path = storage_data.get("database_path")
            if database_path:
                database_path = str(Path(database_path).expanduser())
            library_root = storage_data.get("library_root")
            if library_root:
                library_root = str(Path(library_root).expanduser())
            config.storage = StorageConfig(
                database_path=database_path,
                blob_backend=storage_data.get(
                    "blob_backend", config.storage.blob_backend
                ),
                library_root=library_root,
                blob_chunk_size=storage_data.get(
                    "blob_chunk_size", config.storage.blob_chunk_size
                ),
            )

        if "streaming" in toml_data:
            streaming_data = toml_data["streaming"]
            config.streaming = StreamingConfig(
                chunk_size=streaming_data.get(
                    "chunk_size", config.streaming.chunk_size
                ),
                always_partial=streaming_data.get(
                    "always_partial", config.streaming.always_partial
                ),
            )

        if "logging" in toml_data:
            logging_data = toml_data["logging"]
            log_file = logging_data.get("log_file")
            if log_file:
                log_file = str(Path(log_file).expanduser())
            config.logging = LoggingConfig(
                level=logging_data.get("level", config.logging.level).upper(),
                log_file=log_file,
                rotation=logging_data.get("rotation", config.logging.rotation),
                retention=logging_data.get("retention", config.logging.retention),
                console_output=logging_data.get(
                    "console_output", config.logging.console_output
                ),
            )
    else:
        logger.debug(f"No configuration file at {config_path}, using defaults")

    _apply_env_overrides(config)
    config.validate()
    return config


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
