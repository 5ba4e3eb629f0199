"""
Central logging configuration for the CertPath engine.

Engine code logs through get_logger(__name__) and puts identifiers in
extra= (assessment_id, step, certificate_number, ...). Both formatters
render those fields: JSON keys in production, trailing key=value pairs in
development. RequestIdMiddleware sets request_id_var so every line of a
request carries the same id.

Usage:
    from certpath.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Assessment started", extra={"assessment_id": str(aid)})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything else came in through extra=
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "request_id", "taskName"}

# Chatty libraries kept at WARNING whatever the app level is
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")

_factory_installed = False


def get_request_id() -> Optional[str]:
    """Get the current request ID from context, if set."""
    return request_id_var.get()


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured fields a log call passed via extra=, None values dropped."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_") and value is not None
    }


class RequestIdFilter(logging.Filter):
    """Stamp the current request id (or '-') on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line for production log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        req_id = getattr(record, "request_id", None)
        if req_id and req_id != "-":
            log_obj["request_id"] = req_id
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in extra_fields(record).items():
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            log_obj[key] = value

        return json.dumps(log_obj)


class DevFormatter(logging.Formatter):
    """Readable single-line format with extra= fields appended as key=value."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        line = super().format(record)
        fields = extra_fields(record)
        if not fields:
            return line
        # Traceback (if any) stays last
        head, sep, tail = line.partition("\n")
        pairs = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        return f"{head} | {pairs}{sep}{tail}"


def _install_record_factory() -> None:
    """Default request_id on records from loggers outside our handler."""
    global _factory_installed
    if _factory_installed:
        return
    old_factory = logging.getLogRecordFactory()

    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = old_factory(*args, **kwargs)
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Configure application-wide logging. Safe to call more than once.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: 'production' selects JSON output
        debug: If True, use DEBUG level regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    _install_record_factory()

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter() if environment == "production" else DevFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass identifiers via extra= so both formats keep them."""
    return logging.getLogger(name)
