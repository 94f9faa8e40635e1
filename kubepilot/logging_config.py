"""Audit trail for kubepilot as JSON Lines.

Each line records one operator-visible event: plan_generated,
plan_executed, command_denied, command_refused, diagnosis_complete,
plugin_registered, plugin_unregistered, plugin_analysis_failed,
app_start and app_shutdown. Every entry carries the HTTP request's
correlation id and a redacted copy of the event data.
"""

import os
import json
import logging
from datetime import datetime, timezone
from contextvars import ContextVar

from kubepilot.redaction import redact_data

LOGGER_NAME = "kubepilot"
LOG_FILE_NAME = "kubepilot.jsonl"

# Set per request by the correlation-id middleware in app.py
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def set_correlation_id(cid: str):
    _correlation_id.set(cid)


def get_correlation_id() -> str:
    return _correlation_id.get()


class JSONLFormatter(logging.Formatter):
    """One audit event per line: timestamp, correlation_id, event, data."""

    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlation_id": get_correlation_id(),
            "event": record.msg if isinstance(record.msg, str) else "unknown",
            "data": record.__dict__.get("data", {}),
        }
        return json.dumps(entry, default=str)


def setup_logging(log_dir):
    """Attach the audit file handler to the kubepilot logger.

    Called from the app lifespan. Calling it again for the same directory
    does not add a second handler.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.abspath(os.path.join(log_dir, LOG_FILE_NAME))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if any(getattr(h, "baseFilename", None) == log_file for h in logger.handlers):
        return logger

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(JSONLFormatter())
    logger.addHandler(handler)
    return logger


def log_event(event, data=None):
    """Record a kubepilot audit event.

    Commands, queries and AI output in *data* pass through redact_data, so
    cluster tokens and API keys never reach the log file.
    """
    logger = logging.getLogger(LOGGER_NAME)
    record = logger.makeRecord(
        name=LOGGER_NAME,
        level=logging.INFO,
        fn="",
        lno=0,
        msg=event,
        args=(),
        exc_info=None,
    )
    record.data = redact_data(data or {})
    logger.handle(record)
