"""
BCRA Rates — logging.

Every module logs through get_logger(__name__); the root logger is set up on
first use with a console handler (for `docker logs`) and a file handler that
rolls over at UTC midnight.

Environment:
    LOG_DIR             directory for the log file (default /app/data/logs)
    LOG_FILE_NAME       file name inside LOG_DIR (default bcra-rates.log)
    LOG_RETENTION_DAYS  rotated files kept (default 3)
    LOG_LEVEL           root level (default INFO)
    LOG_FORMAT          "text" or "json" (one JSON object per line)

Records carry the request id of the HTTP call that produced them. Warming
jobs, cache operations and upstream calls may also pass
extra={"job_id": ..., "cache": ..., "upstream_path": ...}; those fields show
up in JSON output and are appended to text lines.
"""

import contextvars
import json
import logging
import os
from logging.handlers import TimedRotatingFileHandler

LOG_DIR = os.getenv("LOG_DIR", "/app/data/logs")
LOG_FILE_NAME = os.getenv("LOG_FILE_NAME", "bcra-rates.log")
LOG_RETENTION_DAYS = int(os.getenv("LOG_RETENTION_DAYS", "3"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONTEXT_FIELDS = ("job_id", "cache", "upstream_path")

_QUIET_LOGGERS = ("uvicorn.access", "curl_cffi", "asyncio", "tenacity")

# Set by the request-id middleware in main.py; "-" outside a request
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default="-"
)

_configured = False


def _context_of(record: logging.LogRecord) -> dict[str, str]:
    return {
        field: str(getattr(record, field))
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class RequestIdFilter(logging.Filter):
    """Stamps record.request_id. Lives on handlers so propagated records get it too."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)s | %(message)s",
            datefmt=LOG_DATE_FORMAT,
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in context.items())
        # keep a traceback, if any, below the context pairs
        head, sep, tail = line.partition("\n")
        return f"{head} | {pairs}{sep}{tail}"


class JsonFormatter(logging.Formatter):
    """Single-line JSON for log aggregation (ELK / Loki)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": self.formatTime(record, LOG_DATE_FORMAT),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", "-"),
            "logger": record.name,
            "message": record.getMessage(),
            **_context_of(record),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, ensure_ascii=False)


def make_formatter(log_format: str = LOG_FORMAT) -> logging.Formatter:
    return JsonFormatter() if log_format == "json" else TextFormatter()


def _build_handlers() -> list[logging.Handler]:
    os.makedirs(LOG_DIR, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(LOG_DIR, LOG_FILE_NAME),
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
        utc=True,
    )
    file_handler.suffix = "%Y-%m-%d"
    handlers: list[logging.Handler] = [logging.StreamHandler(), file_handler]

    formatter = make_formatter()
    request_id_filter = RequestIdFilter()
    for handler in handlers:
        handler.setLevel(LOG_LEVEL)
        handler.setFormatter(formatter)
        handler.addFilter(request_id_filter)
    return handlers


def _configure_root_logger() -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)
    for handler in _build_handlers():
        root.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Named logger; configures the root logger on first call."""
    _configure_root_logger()
    return logging.getLogger(name)
