"""Centralized logging configuration.

This module provides:
- PlainFormatter for human-readable stderr output (default)
- JSONFormatter for structured logs (LOG_FORMAT=json)

Messages may start with a [TAG] (e.g. "[TOKEN] Token issued"); the JSON
formatter lifts it into its own field.
"""

import json
import logging
import re
import sys

TAG_PATTERN = re.compile(r'\[([A-Z_]+)\]\s*(.*)', re.DOTALL)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, service_name: str = None):
        super().__init__()
        self.service_name = service_name or "steam-oauth-bridge"

    def to_dict(self, record: logging.LogRecord) -> dict:
        # Extract tag from message if present: [TAG] message
        tag = None
        message = record.getMessage()
        tag_match = TAG_PATTERN.match(message)
        if tag_match:
            tag = tag_match.group(1)
            message = tag_match.group(2)

        log_entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "service": self.service_name,
            "level": record.levelname,
            "tag": tag,
            "message": message,
            "module": record.module,
            "extra": {
                "function": record.funcName,
                "line": record.lineno,
            }
        }

        # Add exception info if present
        if record.exc_info:
            log_entry["extra"]["exception"] = self.formatException(record.exc_info)

        return log_entry

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.to_dict(record))


class PlainFormatter(logging.Formatter):
    """Plain text formatter for stderr output (local debugging)."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(level: str = "INFO", fmt: str = "plain", service_name: str = None) -> logging.Logger:
    """Configure root logging.

    Args:
        level: Root log level name.
        fmt: "plain" or "json".
        service_name: Service name stamped on JSON records.

    Returns:
        Configured root logger.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        stderr_handler.setFormatter(JSONFormatter(service_name))
    else:
        stderr_handler.setFormatter(PlainFormatter())
    root_logger.addHandler(stderr_handler)

    # Suppress noisy HTTP client logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root_logger
