from __future__ import annotations

import logging

from brokerage_import.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(LOGGER_NAME, level, __file__, 1, msg, None, None)


def test_labeled_formatter_labels():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hola")) == "INFO hola"
    assert fmt.format(_record(logging.WARNING, "ojo")) == "WARN ojo"
    assert fmt.format(_record(logging.ERROR, "mal")) == "ERROR mal"
    assert fmt.format(_record(SUMMARY_LEVEL, "file=x")) == "SUMMARY file=x"


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging(debug=True)
    assert first is second
    assert len(first.handlers) == 1
    assert first.level == logging.DEBUG
    assert first.propagate is False


def test_summary_goes_to_stdout(capsys):
    setup_logging()
    log_summary("file=a.xlsx clients=1/0")
    logging.getLogger(f"{LOGGER_NAME}.services.executor").info("child logger")
    logging.getLogger(f"{LOGGER_NAME}.services.executor").debug("hidden")
    out = capsys.readouterr().out
    assert "SUMMARY file=a.xlsx clients=1/0" in out
    assert "INFO child logger" in out
    assert "hidden" not in out


def test_get_logger_configures_on_first_use():
    reset_logging()
    logger = get_logger()
    assert logger.name == LOGGER_NAME
    assert logger.handlers


def test_reset_logging_restores_propagation():
    setup_logging()
    reset_logging()
    logger = logging.getLogger(LOGGER_NAME)
    assert logger.handlers == []
    assert logger.propagate is True
