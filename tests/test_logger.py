"""
Tests for the logging helpers.
"""
import logging

from shared.utils.logger import log_error, log_function_call, setup_logger


def raise_and_catch() -> Exception:
    try:
        raise ConnectionError("metric store unavailable")
    except ConnectionError as e:
        return e


def test_setup_logger_configures_once():
    logger = setup_logger("tests.logger.once")
    handlers = list(logger.handlers)

    assert setup_logger("tests.logger.once").handlers == handlers
    assert handlers


def test_log_error_prefixes_context(caplog):
    logger = setup_logger("tests.logger.context")

    with caplog.at_level(logging.ERROR, logger="tests.logger.context"):
        log_error(logger, raise_and_catch(), "Database session error", traceback=False)

    record = caplog.records[-1]
    assert record.getMessage() == "Database session error: ConnectionError: metric store unavailable"
    assert record.exc_info is None


def test_log_error_attaches_traceback_outside_except(caplog):
    logger = setup_logger("tests.logger.traceback")
    error = raise_and_catch()

    with caplog.at_level(logging.ERROR, logger="tests.logger.traceback"):
        log_error(logger, error, traceback=True)

    record = caplog.records[-1]
    assert record.getMessage() == "ConnectionError: metric store unavailable"
    assert record.exc_info[1] is error
    assert "raise_and_catch" in caplog.text


def test_log_function_call_is_debug(caplog):
    logger = setup_logger("tests.logger.calls")

    with caplog.at_level(logging.DEBUG, logger="tests.logger.calls"):
        log_function_call(logger, "get_summary", segment="Backend")

    assert caplog.records[-1].levelno == logging.DEBUG
    assert caplog.records[-1].getMessage() == "Calling get_summary(segment=Backend)"
