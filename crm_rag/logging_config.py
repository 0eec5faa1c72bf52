"""
CRM RAG Logging
===============

Root logger setup driven by ``LoggingConfig``.

Pipeline code attaches context through ``extra`` (``doc_id``, ``data_type``,
``stage``, ``top_k``, ``count``, ``duration``). JSON output emits those as
top-level keys; text output appends them as ``key=value`` pairs.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from .config import LoggingConfig

CONTEXT_FIELDS = ("stage", "doc_id", "data_type", "top_k", "count", "duration")

# Provider SDKs and HTTP clients log every request at INFO
QUIET_LOGGERS = ("chromadb", "httpx", "httpcore", "urllib3", "openai", "anthropic")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Pipeline context attached to a record, in a fixed key order."""
    context = {}
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, then pipeline context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ContextFormatter(logging.Formatter):
    """Human-readable lines with pipeline context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt="%H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def setup_logging(config: LoggingConfig):
    """
    Replace the root handlers with a console handler and, when
    ``config.log_file`` is set, a size-rotated file handler.
    """
    root = logging.getLogger()
    root.setLevel(config.level.upper())
    root.handlers.clear()

    formatter = JSONFormatter() if config.json_logs else ContextFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        os.makedirs(os.path.dirname(config.log_file) or ".", exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging configured: level={config.level} json={config.json_logs} file={config.log_file}")
