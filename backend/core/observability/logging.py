"""JSON structured logging with mandatory fields and PII redaction."""
import json
import logging
import re
import sys
import threading
from datetime import datetime, timezone
from typing import Optional

from backend.core.config import settings

# Thread-local storage for context
_context = threading.local()

# LogRecord attributes that are not structured "extra" fields
_RESERVED_ATTRS = frozenset(
    (
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "message", "taskName",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON formatter with mandatory fields and PII redaction."""

    def __init__(self):
        super().__init__()
        self.iban_pattern = re.compile(r"\b([A-Z]{2}\d{2}[A-Z0-9]{11,30})\b")
        self.email_pattern = re.compile(r"(\b\S+@\S+\.\S+\b)")

    def _redact_pii(self, text):
        if not isinstance(text, str):
            return text
        text = self.iban_pattern.sub(self._mask_iban, text)
        return self.email_pattern.sub(self._mask_email, text)

    def _mask_iban(self, match) -> str:
        """Mask IBAN: keep the country code, mask the rest."""
        iban = match.group(1)
        return iban[:2] + "*" * (len(iban) - 2)

    def _mask_email(self, match) -> str:
        """Mask email: keep first char of the local part."""
        email = match.group(1)
        user, _, domain = email.partition("@")
        masked_user = "*" if len(user) <= 1 else user[0] + "*" * (len(user) - 1)
        return f"{masked_user}@{domain}"

    def format(self, record):
        log_entry = {
            "trace_id": getattr(_context, "trace_id", None) or "unknown",
            "tenant_id": getattr(_context, "tenant_id", None) or "unknown",
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": self._redact_pii(record.getMessage()),
            "ts_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            log_entry[key] = self._redact_pii(value)

        return json.dumps(log_entry, default=str)


def set_trace_id(trace_id: Optional[str]) -> None:
    """Set trace ID for current thread context."""
    _context.trace_id = trace_id


def set_tenant_id(tenant_id: Optional[str]) -> None:
    """Set tenant ID for current thread context."""
    _context.tenant_id = tenant_id


def init_logging() -> None:
    """Install the JSON handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get logger with JSON formatting."""
    return logging.getLogger(name)


# Convenience logger
logger = get_logger(__name__)
