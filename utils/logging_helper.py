"""Logging utilities with correlation IDs, secret redaction and attempt counters."""

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_SECRET_RE = re.compile(r"(?i)\b(pwd|password)=(\{(?:[^}]|\}\})*\}|[^;]*)")


def redact_connection_string(text: str) -> str:
    """Mask ``PWD=`` and ``Password=`` values in an ODBC connection string."""
    return _SECRET_RE.sub(lambda m: f"{m.group(1)}=***", text)


class CorrelationIdFilter(logging.Filter):
    """Inject the correlation ID into all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'correlation_id'):
            record.correlation_id = correlation_id_var.get() or '-'
        return True


class RedactSecretsFilter(logging.Filter):
    """Strip passwords from messages that embed connection strings."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_connection_string(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


connection_counts = {"success": 0, "failure": 0}


def record_success() -> None:
    connection_counts["success"] += 1


def record_failure() -> None:
    connection_counts["failure"] += 1


def setup_logging(level: int = logging.INFO) -> str:
    """Configure root logging and generate a correlation ID.

    Returns the generated correlation ID so callers can include it elsewhere if
    needed.
    """
    cid = uuid.uuid4().hex
    correlation_id_var.set(cid)

    root = logging.getLogger()
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(correlation_id)s] %(levelname)s %(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # Handlers see records propagated from child loggers, so filter there.
    for handler in root.handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())
        if not any(isinstance(f, RedactSecretsFilter) for f in handler.filters):
            handler.addFilter(RedactSecretsFilter())

    return cid
