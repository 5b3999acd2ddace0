"""
Unit tests for logging setup.
"""

import logging
import logging.handlers

import pytest

from bi_sentinel.core.config import Config
from bi_sentinel.core.logging_config import setup_logging


@pytest.fixture
def test_logger_name():
    name = "bi_sentinel_logging_test"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_setup_logging_adds_console_and_file_handlers(tmp_path, test_logger_name):
    settings = Config(logs_dir=tmp_path, log_level="DEBUG")

    logger = setup_logging(test_logger_name, settings=settings)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(tmp_path / f"{test_logger_name}.log")

    logger.info("detector configured")
    file_handlers[0].flush()
    assert "detector configured" in (tmp_path / f"{test_logger_name}.log").read_text()


def test_setup_logging_is_idempotent(tmp_path, test_logger_name):
    settings = Config(logs_dir=tmp_path)

    first = setup_logging(test_logger_name, settings=settings)
    second = setup_logging(test_logger_name, settings=settings)

    assert first is second
    assert len(second.handlers) == 2
