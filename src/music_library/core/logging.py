"""
Centralized logging configuration using Loguru
"""

import sys
from pathlib import Path

from loguru import logger

from .config import LoggingConfig, get_data_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def get_log_file_path() -> Path:
    """Get the path to the default log file."""
    return get_data_dir() / "music-library.log"


def setup_logging(config: LoggingConfig) -> Path:
    """
    Configure loguru sinks for the application.

    Args:
        config: Logging section of the application configuration

    Returns:
        Path of the log file being written
    """
    log_file = Path(config.log_file) if config.log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler to avoid duplicate console output
    logger.remove()

    logger.add(
        log_file,
        rotation=config.rotation,
        retention=config.retention,
        level=config.level,
        format=LOG_FORMAT,
        enqueue=False,
    )

    if config.console_output:
        logger.add(sys.stderr, level=config.level, format="{level}: {message}")

    logger.info(
        f"Logging initialized: {log_file} (level={config.level}, "
        f"rotation={config.rotation}, retention={config.retention})"
    )
    return log_file
