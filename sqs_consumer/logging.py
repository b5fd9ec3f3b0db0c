from __future__ import annotations
import json
import os
import sys
import time
import traceback
from typing import Any, Dict, Optional, TextIO


_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


class StructuredLogger:
    """JSON-line logger shared by the consumer, its listeners and the runner."""

    def __init__(
        self,
        name: str = "sqs_consumer",
        level: str = "INFO",
        stream: Optional[TextIO] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.level = level.upper()
        self._stream = stream
        self._context: Dict[str, Any] = dict(context or {})

    # ----------------------------------------------------------------------
    # Core logging method
    # ----------------------------------------------------------------------
    def _log(self, level: str, msg: str, extra: Optional[Dict[str, Any]] = None):
        if _LEVELS.get(level, 100) < _LEVELS.get(self.level, 20):
            return

        try:
            record = {
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                "level": level,
                "logger": self.name,
                "msg": str(msg),
            }

            fields = dict(self._context)
            if extra and isinstance(extra, dict):
                fields.update(extra)
            for k, v in fields.items():
                # Core keys win over context
                if k not in record:
                    record[k] = v

            line = json.dumps(record, ensure_ascii=False, default=str)
            print(line, file=self._stream or sys.stdout, flush=True)

        except Exception as e:
            # Never crash the consumer due to logging errors
            print(f"[logger-error] failed to log: {e}", file=sys.stderr, flush=True)

    # ----------------------------------------------------------------------
    # Public convenience methods
    # ----------------------------------------------------------------------
    def debug(self, msg: str, extra: Optional[Dict[str, Any]] = None):
        self._log("DEBUG", msg, extra)

    def info(self, msg: str, extra: Optional[Dict[str, Any]] = None):
        self._log("INFO", msg, extra)

    def warning(self, msg: str, extra: Optional[Dict[str, Any]] = None):
        self._log("WARNING", msg, extra)

    def error(self, msg: Any, extra: Optional[Dict[str, Any]] = None):
        if isinstance(msg, BaseException):
            extra = dict(extra or {}, error_type=type(msg).__name__)
            if msg.__traceback__ is not None:
                extra["traceback"] = "".join(
                    traceback.format_exception(type(msg), msg, msg.__traceback__)
                )
            self._log("ERROR", f"{type(msg).__name__}: {msg}", extra)
        else:
            self._log("ERROR", msg, extra)

    def exception(self, msg: str, extra: Optional[Dict[str, Any]] = None):
        """Log at ERROR with the currently handled exception's traceback."""
        self._log("ERROR", msg, dict(extra or {}, traceback=traceback.format_exc()))

    # ----------------------------------------------------------------------
    # Context binding
    # ----------------------------------------------------------------------
    def bind(self, **context: Any) -> "StructuredLogger":
        """
        Return a child logger with context permanently attached.
        Example:
            log = get_logger("consumer").bind(queue_url=url, message_id="m-1")
        """
        merged = dict(self._context)
        merged.update(context)
        return StructuredLogger(name=self.name, level=self.level, stream=self._stream, context=merged)


# ----------------------------------------------------------------------
# Module-level logger registry (one logger per name)
# ----------------------------------------------------------------------

_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str = "sqs_consumer", level: Optional[str] = None) -> StructuredLogger:
    """Get or create a logger for the given name. Level defaults to LOG_LEVEL."""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name=name, level=level or os.environ.get("LOG_LEVEL", "INFO"))
    elif level:
        _loggers[name].level = level.upper()
    return _loggers[name]


__all__ = ["StructuredLogger", "get_logger"]
