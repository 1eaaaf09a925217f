"""Logging setup for registry processes.

Human-readable lines for development, one JSON object per line for log
collection. Registry modules attach structured context to their records as
``extra={"extra_fields": {...}}`` (principal, rule, operation, audit
sequence); both formatters render it.

Security Impact:
    - Registry modules log principals and ids, not names or content hashes
    - Access denials carry principal and rule as separate fields so they can
      be filtered and alerted on
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

# Keys owned by the formatter; context fields never overwrite them.
_RESERVED_KEYS = frozenset({"timestamp", "level", "logger", "message", "module", "function", "line", "exception"})


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    fields = getattr(record, "extra_fields", None)
    if not isinstance(fields, dict):
        return {}
    return {
        key: value for key, value in fields.items()
        if key not in _RESERVED_KEYS and value is not None
    }


class StructuredFormatter(logging.Formatter):
    """Formats log records as JSON objects, context fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends context as ``[key=value ...]``."""

    def __init__(self):
        super().__init__(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        first, newline, rest = line.partition("\n")
        return f"{first} [{rendered}]{newline}{rest}"


def setup_logging(use_json: bool = False, log_level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Configure the root logger with a single console handler.

    Parameters:
        use_json: Emit JSON lines instead of plain text
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream; defaults to stderr so CLI output stays clean
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if use_json else ContextFormatter())
    root_logger.addHandler(handler)
