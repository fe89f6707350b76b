"""Tests for loguru setup."""

from loguru import logger

from music_library.core.config import LoggingConfig
from music_library.core.logging import setup_logging


def test_setup_logging_writes_to_configured_file(tmp_path):
    log_file = tmp_path / "logs" / "library.log"

    returned = setup_logging(LoggingConfig(level="DEBUG", log_file=str(log_file)))
    logger.debug("hello from the test")
    logger.remove()

    assert returned == log_file
    content = log_file.read_text()
    assert "Logging initialized" in content
    assert "hello from the test" in content


def test_level_filters_messages(tmp_path):
    log_file = tmp_path / "library.log"

    setup_logging(LoggingConfig(level="WARNING", log_file=str(log_file)))
    logger.info("quiet")
    logger.warning("loud")
    logger.remove()

    content = log_file.read_text()
    assert "quiet" not in content
    assert "loud" in content
