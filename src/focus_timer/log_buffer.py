"""Logging setup with a circular buffer for the terminal widget."""

import logging
from collections import deque
from datetime import datetime
from typing import Deque

LOGGER_NAME = "focus_timer"

# Recent log entries (max 100), newest last
log_buffer: Deque[dict] = deque(maxlen=100)


class LogBufferHandler(logging.Handler):
    """Captures log records into log_buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "message": self.format(record),
            })
        except Exception:
            # Silently fail to avoid logging errors in the logging system
            pass


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach the buffer handler to the package logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, LogBufferHandler) for h in logger.handlers):
        handler = LogBufferHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    # Keep records out of the terminal while the live widget owns it
    logger.propagate = False
    return logger


def recent_logs(limit: int = 5) -> list[dict]:
    if limit <= 0:
        return []
    return list(log_buffer)[-limit:]
