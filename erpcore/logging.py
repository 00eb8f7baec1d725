from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from erpcore.context import get_correlation_id
from erpcore.core.config import get_settings


_BASE_RECORD_KEYS = set(logging.makeLogRecord({}).__dict__.keys())
_KNOWN_FIELDS = {
    "operation",
    "attempt",
    "max_attempts",
    "duration_ms",
    "sequence_name",
    "document_number",
    "journal_id",
    "journal_number",
    "journal_type",
    "account_id",
    "product_id",
    "quantity",
    "shortage",
    "total_cost",
    "total_debit",
    "total_credit",
    "previous_value",
    "current_value",
    "reason",
    "status",
    "error",
}


_TRUNCATE_AT = 500


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        return True


_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _DEFAULT_RECORD_FACTORY(*args, **kwargs)
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; only whitelisted ``extra`` keys are emitted under ``fields``."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            key: value for key, value in record.__dict__.items() if key in _KNOWN_FIELDS and key not in _BASE_RECORD_KEYS
        }
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:_TRUNCATE_AT]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None) -> None:
    """Route every record to stdout as JSON. SQL echo follows ``DATABASE_ECHO``."""
    root_logger = logging.getLogger()
    if getattr(root_logger, "_erpcore_configured", False):
        return

    settings = get_settings()
    resolved = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(CorrelationIdFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(resolved)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.database_echo else logging.WARNING)
    root_logger._erpcore_configured = True  # type: ignore[attr-defined]
