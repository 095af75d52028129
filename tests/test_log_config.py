from __future__ import annotations

import logging

import pytest

from log_config import LOG_FORMAT, configure_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_levels(root_logger) -> None:
    configure_logging("debug")
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert root_logger.handlers[0].formatter._fmt == LOG_FORMAT

    configure_logging("not-a-level")
    assert root_logger.level == logging.INFO

    configure_logging(logging.WARNING)
    assert root_logger.level == logging.WARNING
