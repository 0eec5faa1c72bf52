"""
Tests for structured logging.
"""

import json
import logging

import pytest

from crm_rag.config import LoggingConfig
from crm_rag.logging_config import ContextFormatter, JSONFormatter, setup_logging


def make_record(msg="Ingested customer_C1", **extra):
    record = logging.LogRecord("crm_rag.rag.ingestion", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "crm_rag.rag.ingestion"
        assert entry["msg"] == "Ingested customer_C1"
        assert "ts" in entry

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(make_record(doc_id="customer_C1", data_type="customer", count=1)))
        assert entry["doc_id"] == "customer_C1"
        assert entry["data_type"] == "customer"
        assert entry["count"] == 1
        assert "stage" not in entry


class TestContextFormatter:

    def test_context_appended(self):
        line = ContextFormatter().format(make_record(stage="filtered", count=2))
        assert line.endswith("Ingested customer_C1 | stage=filtered count=2")

    def test_plain_message(self):
        line = ContextFormatter().format(make_record())
        assert line.endswith("crm_rag.rag.ingestion: Ingested customer_C1")


class TestSetupLogging:

    def setup_method(self):
        root = logging.getLogger()
        self.previous = list(root.handlers), root.level

    def teardown_method(self):
        root = logging.getLogger()
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = self.previous[0]
        root.setLevel(self.previous[1])

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "crm_rag.log"
        setup_logging(LoggingConfig(level="DEBUG", json_logs=True, log_file=str(log_file)))

        logging.getLogger("crm_rag.test").info("hello", extra={"stage": "received"})
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert json.loads(lines[-1])["stage"] == "received"
        assert logging.getLogger("chromadb").level == logging.WARNING

    def test_console_only(self):
        setup_logging(LoggingConfig(level="warning", json_logs=False, log_file=None))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ContextFormatter)

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")
