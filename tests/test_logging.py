"""Tests for logging configuration."""

import json
import logging

from landlordpal.logging_config import JSONFormatter, sanitize_for_logging, setup_logging


class TestSanitize:

    def test_masks_email(self):
        assert sanitize_for_logging("contact a@b.com now") == "contact [EMAIL-REDACTED] now"

    def test_masks_phone(self):
        assert "555" not in sanitize_for_logging("call 555-123-4567")
        assert "555" not in sanitize_for_logging("call (555) 123-4567")

    def test_plain_ids_untouched(self):
        assert sanitize_for_logging("t1") == "t1"
        assert sanitize_for_logging(None) == "None"

    def test_truncates(self):
        assert sanitize_for_logging("x" * 100, max_length=10) == "x" * 10 + "...[truncated]"


class TestJSONFormatter:

    def test_one_object_per_record(self):
        record = logging.LogRecord(
            "landlordpal.storage", logging.WARNING, __file__, 10, "Skipped %s", ("op",), None,
        )
        record.table = "tenants"
        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "Skipped op"
        assert data["table"] == "tenants"
        assert data["source"]["line"] == 10

    def test_contact_details_masked(self):
        record = logging.LogRecord(
            "landlordpal.storage", logging.INFO, __file__, 10,
            "Upserted tenant with email %s", ("a@b.com",), None,
        )
        record.phone = "555-123-4567"
        data = json.loads(JSONFormatter().format(record))

        assert "a@b.com" not in data["message"]
        assert data["phone"] == "[PHONE-REDACTED]"
        assert "source" not in data


class TestSetupLogging:

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "store.log"
        logger = setup_logging(log_file=log_file)

        logging.getLogger("landlordpal.test").info("hello")
        for handler in logger.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "hello"

    def test_repeat_setup_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging(verbose=True)

        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.DEBUG
