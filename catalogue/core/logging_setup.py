# ============================================================================
# Logging Setup - Structured JSON / Text Output + Per-Request Context
# ============================================================================

"""
Logging configuration for the service:
1. JSON formatter (one object per line, structured `extra` fields kept)
2. Text formatter for local development
3. configure_logging(): single root stream handler, idempotent
4. RequestLoggerAdapter: binds request_id/method/path to every log line
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Tuple

# ============================================================================
# CONFIGURATION
# ============================================================================

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_HANDLER_MARKER = "_catalogue_handler"

# ============================================================================
# FORMATTERS
# ============================================================================

class JsonFormatter(logging.Formatter):
    """Render a LogRecord as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """
    Install the service handler on the root logger.

    Safe to call more than once: the previous service handler is replaced,
    handlers installed by others (pytest, uvicorn) are left alone.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    setattr(handler, _HANDLER_MARKER, True)
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)
    root.setLevel(level.upper())

# ============================================================================
# PER-REQUEST CONTEXT
# ============================================================================

class RequestLoggerAdapter(logging.LoggerAdapter):
    """
    Logger bound to one request.

    Adds the request context to `extra` (so the JSON formatter emits it as
    fields) and prefixes the message with the request id for text output.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return f"{msg} [{self.extra.get('request_id', '-')}]", kwargs


def bind_request_logger(logger: logging.Logger, context: Dict[str, Any]) -> RequestLoggerAdapter:
    """Wrap `logger` with a request context dict."""
    return RequestLoggerAdapter(logger, dict(context))
