from __future__ import annotations

import logging
from io import StringIO

from pupil_import.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    enable_debug,
    get_logger,
    log_summary,
    setup_logging,
)


def capture(logger: logging.Logger) -> StringIO:
    stream = StringIO()
    handler = logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    handler.setStream(stream)
    return stream


def test_setup_logging_creates_logger_with_labeled_formatter(clean_logging):
    """Test that setup_logging creates a logger with labeled format."""
    logger = setup_logging()

    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent(clean_logging):
    assert setup_logging() is setup_logging()
    assert get_logger() is setup_logging()
    assert len(get_logger().handlers) == 1


def test_labeled_prefixes(clean_logging):
    """Every line starts with INFO|WARN|ERROR|SUMMARY."""
    logger = setup_logging()
    stream = capture(logger)

    logger.info("file=a.csv rows=3")
    logger.warning("a.csv: missing required columns: S_AHV")
    logger.error("config: profile not found")
    log_summary("files=1 rows=3")
    logger.debug("hidden")

    assert stream.getvalue().splitlines() == [
        "INFO file=a.csv rows=3",
        "WARN a.csv: missing required columns: S_AHV",
        "ERROR config: profile not found",
        "SUMMARY files=1 rows=3",
    ]


def test_child_loggers_use_the_application_handler(clean_logging):
    stream = capture(setup_logging())
    logging.getLogger(f"{LOGGER_NAME}.services.orchestrator").info("from a module")
    assert stream.getvalue() == "INFO from a module\n"


def test_enable_debug(clean_logging):
    logger = setup_logging()
    stream = capture(logger)
    enable_debug()
    logger.debug("details")
    assert "DEBUG details" in stream.getvalue()


def test_summary_level_is_between_info_and_warning():
    assert logging.INFO < SUMMARY_LEVEL < logging.WARNING
