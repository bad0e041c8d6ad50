"""Tests for the package logging setup."""

import logging

from video_backend.config.logging_config import LOGGER_NAME, ColorFormatter, LOG_FORMAT, setup_logging


def make_record(level):
    return logging.LogRecord(
        name="video_backend.app.utils.chunk_reassembler",
        level=level,
        pathname=__file__,
        lineno=1,
        msg="Session %s reassembled",
        args=("s1",),
        exc_info=None,
    )


def test_color_formatter_tints_level_only():
    record = make_record(logging.WARNING)

    line = ColorFormatter(LOG_FORMAT).format(record)

    assert "[\033[33mWARNING\033[0m]" in line
    assert "video_backend.app.utils.chunk_reassembler: Session s1 reassembled" in line
    assert record.levelname == "WARNING"


def test_setup_logging_adds_one_handler():
    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    saved_level = logger.level
    logger.handlers.clear()
    try:
        setup_logging("debug")
        setup_logging("debug")

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, ColorFormatter)
    finally:
        logger.handlers[:] = saved
        logger.setLevel(saved_level)
