"""Tests for command-line logging configuration."""

import logging

import pytest

from cogboard.log_setup import LOG_FORMAT, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_level_by_name(self, restore_root_logger: logging.Logger) -> None:
        setup_logging("debug")
        assert restore_root_logger.level == logging.DEBUG

    def test_level_by_number(self, restore_root_logger: logging.Logger) -> None:
        setup_logging(logging.WARNING)
        assert restore_root_logger.level == logging.WARNING

    def test_unknown_name_falls_back_to_info(self, restore_root_logger: logging.Logger) -> None:
        setup_logging("chatty")
        assert restore_root_logger.level == logging.INFO

    def test_format(self, restore_root_logger: logging.Logger) -> None:
        setup_logging()
        handler = restore_root_logger.handlers[0]
        assert handler.formatter is not None
        assert handler.formatter._fmt == LOG_FORMAT
