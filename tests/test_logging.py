"""
Tests for cryptutil/core/logging.py - Secure Logging

Tests cover:
- Redaction of key material in messages and arguments
- JSON-lines formatting
- Logger construction and file output
"""

import json
import logging
import uuid

import pytest

from cryptutil.core.config import LoggingConfig
from cryptutil.core.logging import (
    ROOT_LOGGER_NAME,
    SecureLogFilter,
    StructuredLogFormatter,
    configure_logging,
    get_secure_logger,
)


def make_record(msg, args=()):
    return logging.LogRecord("cryptutil.test", logging.INFO, __file__, 1, msg, args, None)


@pytest.fixture
def restore_root_logger():
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in saved[0]:
        logger.addHandler(handler)
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


# ===========================================================================
# Filter Tests
# ===========================================================================

class TestSecureLogFilter:
    @pytest.mark.security
    @pytest.mark.parametrize("message,secret", [
        ("using key=hunter2 for HMAC", "hunter2"),
        ("nonce: abc123", "abc123"),
        ("password='letmein'", "letmein"),
        ("token=xyz789", "xyz789"),
    ])
    def test_redacts_named_values(self, message, secret):
        record = make_record(message)
        assert SecureLogFilter().filter(record) is True
        assert secret not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    @pytest.mark.security
    def test_redacts_hex_runs(self):
        record = make_record("tag %s", ("ab" * 32,))
        SecureLogFilter().filter(record)
        assert "ab" * 32 not in record.getMessage()

    @pytest.mark.security
    def test_redacts_dict_args(self):
        record = make_record("%(what)s", ())
        record.args = {"what": "secret=s3cr3t"}
        SecureLogFilter().filter(record)
        assert "s3cr3t" not in record.getMessage()

    @pytest.mark.unit
    def test_leaves_plain_text(self):
        record = make_record("Building %s-%s cipher", ("AES", "CBC"))
        SecureLogFilter().filter(record)
        assert record.getMessage() == "Building AES-CBC cipher"

    @pytest.mark.unit
    def test_additional_patterns(self):
        import re
        record = make_record("account 12345")
        SecureLogFilter(additional_patterns=[re.compile(r"\d{5}")]).filter(record)
        assert record.getMessage() == "account [REDACTED]"


# ===========================================================================
# Formatter Tests
# ===========================================================================

class TestStructuredLogFormatter:
    @pytest.mark.unit
    def test_json_line(self):
        line = StructuredLogFormatter().format(make_record("hello %s", ("world",)))
        data = json.loads(line)
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "cryptutil.test"
        assert "timestamp" in data


# ===========================================================================
# Logger Construction Tests
# ===========================================================================

class TestGetSecureLogger:
    @pytest.mark.unit
    def test_file_output_is_redacted(self, tmp_path):
        log_file = tmp_path / "logs" / "cryptutil.log"
        logger = get_secure_logger(
            f"cryptutil.test.{uuid.uuid4().hex}",
            level="DEBUG",
            enable_console=False,
            log_file=log_file,
        )
        logger.info("derived key=abcdef for %s", "AES")
        for handler in logger.handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "derived" in text
        assert "abcdef" not in text

    @pytest.mark.unit
    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / "cryptutil.jsonl"
        logger = get_secure_logger(
            f"cryptutil.test.{uuid.uuid4().hex}",
            level="INFO",
            enable_console=False,
            enable_json=True,
            log_file=log_file,
        )
        logger.warning("probe failed")
        for handler in logger.handlers:
            handler.flush()

        assert json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])["message"] == "probe failed"

    @pytest.mark.unit
    def test_handlers_added_once(self):
        name = f"cryptutil.test.{uuid.uuid4().hex}"
        first = get_secure_logger(name)
        second = get_secure_logger(name)
        assert first is second
        assert len(second.handlers) == 1
        assert second.propagate is False

    @pytest.mark.unit
    def test_configure_logging(self, restore_root_logger):
        for handler in list(restore_root_logger.handlers):
            restore_root_logger.removeHandler(handler)

        logger = configure_logging(LoggingConfig(level="DEBUG"))
        assert logger is restore_root_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
