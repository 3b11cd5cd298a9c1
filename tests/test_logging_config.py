"""Tests for logging setup."""

import logging

import pytest

from tally_recon.config import LoggingConfig
from tally_recon.utils.exceptions import ConfigurationError
from tally_recon.utils.logging_config import resolve_level, setup_logging_from_config


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("tally_recon")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


def test_resolve_level():
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level("DEBUG") == logging.DEBUG
    with pytest.raises(ConfigurationError):
        resolve_level("chatty")


def test_config_level_format_and_file(tmp_path):
    log_file = tmp_path / "logs" / "recon.log"
    config = LoggingConfig(level="WARNING", format="%(levelname)s|%(message)s", file=str(log_file))

    logger = setup_logging_from_config(config)

    assert logger.level == logging.WARNING
    console_handler, file_handler = logger.handlers
    assert console_handler.formatter._fmt == "%(levelname)s|%(message)s"
    assert file_handler.baseFilename == str(log_file)
    assert log_file.parent.exists()


def test_verbose_forces_debug():
    logger = setup_logging_from_config(LoggingConfig(level="ERROR"), verbose=True)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
