"""Tests for error handling utilities."""

import logging

import httpx

from telegram_ai_relay.errors import (
    DecodeError,
    ErrorCategory,
    RelayError,
    TelegramAPIError,
    error_code_for,
    log_relay_error,
    setup_logger,
)


def test_error_code_format():
    code = error_code_for("get_updates", ErrorCategory.FETCH)
    assert code.startswith("FETCH-ERR-")
    assert len(code.rsplit("-", 1)[1]) == 3


def test_error_code_is_stable():
    assert error_code_for("complete", ErrorCategory.COMPLETION) == error_code_for(
        "complete", ErrorCategory.COMPLETION
    )


def test_error_code_categories():
    assert error_code_for("x").startswith("GEN-ERR-")
    assert error_code_for("x", "CUSTOM").startswith("CUSTOM-ERR-")
    assert error_code_for("x", ErrorCategory.COMPLETION).startswith("AI-ERR-")


def test_log_relay_error(caplog):
    error = httpx.ConnectError("connection refused")

    with caplog.at_level(logging.ERROR, logger="telegram_ai_relay"):
        code = log_relay_error("send_reply", error, ErrorCategory.SEND, chat_id=123)

    assert code == error_code_for("send_reply", ErrorCategory.SEND)
    assert "Error in send_reply (chat_id=123): connection refused" in caplog.text
    assert code in caplog.text


def test_telegram_api_error_message():
    error = TelegramAPIError("Conflict: terminated by other getUpdates request", 409)
    assert isinstance(error, RelayError)
    assert error.error_code == 409
    assert "409" in str(error)

    assert str(TelegramAPIError("Unauthorized")) == "Telegram API error: Unauthorized"


def test_decode_error_is_relay_error():
    assert issubclass(DecodeError, RelayError)


def test_setup_logger_installs_handlers_once():
    logger = setup_logger("telegram_ai_relay.test_once")
    count = len(logger.handlers)
    assert setup_logger("telegram_ai_relay.test_once") is logger
    assert len(logger.handlers) == count


def test_error_file_uses_json_formatter():
    from pythonjsonlogger.json import JsonFormatter

    file_handlers = [
        handler for handler in logging.getLogger("telegram_ai_relay").handlers
        if isinstance(handler, logging.FileHandler)
    ]
    assert file_handlers
    assert all(isinstance(handler.formatter, JsonFormatter) for handler in file_handlers)
    assert all(handler.level == logging.ERROR for handler in file_handlers)
