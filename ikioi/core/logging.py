"""
Structured logging for the goals service.

- Production emits one JSON object per line; other environments a compact
  single-line format.
- The current request id lives in a ContextVar and is stamped onto every
  record by RequestIdFilter.
- log_event writes domain events (goal.created, goal.effort_logged, ...)
  with user/goal correlation; event extras travel as one "context" mapping.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

LOGGER_NAME = "ikioi"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Record attributes promoted into the JSON payload when set
_STRUCTURED_FIELDS = (
    "user_id",
    "goal_id",
    "event_type",
    "error_code",
    "status",
    "path",
    "method",
    "latency_bucket",
    "error_message",
    "dialect",
)

# (upper bound in ms, label); the last label covers everything slower
_LATENCY_BUCKETS = (
    (10, "<10ms"),
    (100, "10-100ms"),
    (500, "100-500ms"),
    (1000, "500-1000ms"),
)
_SLOWEST_BUCKET = ">=1000ms"

_TRUNCATE_LIMIT = 500


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    """Request id bound to the current context, or `default`."""
    rid = request_id_ctx_var.get()
    return default if rid is None else rid


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in _LATENCY_BUCKETS:
        if latency_ms < bound:
            return label
    return _SLOWEST_BUCKET


def _utc_timestamp(record: logging.LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created, timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestIdFilter(logging.Filter):
    """Stamp records that carry no explicit request_id with the context one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(
            (key, getattr(record, key))
            for key in _STRUCTURED_FIELDS
            if getattr(record, key, None) is not None
        )
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = [f"[{LOGGER_NAME}]"]
        for label, attr in (("rid", "request_id"), ("goal", "goal_id")):
            value = getattr(record, attr, None)
            if value:
                tags.append(f"[{label}={value}]")
        line = f"{_utc_timestamp(record)} {record.levelname} {''.join(tags)} {record.getMessage()}"
        context = getattr(record, "context", None)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """Install a single stdout handler on the ikioi logger.

    LOG_LEVEL (or `level`) overrides the default INFO threshold.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn installs its own handlers; keep them from double-printing through root
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).propagate = False


def _safe_truncate(value, limit: int = _TRUNCATE_LIMIT) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def _context_value(value):
    # Numbers and flags stay JSON-native; everything else is bounded text
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return _safe_truncate(value)


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str],
    user_id: Optional[str] = None,
    goal_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Emit one structured domain event on the ikioi logger."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        # Library use (tests, scripts) without app startup
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "goal_id": goal_id,
    }
    if event_type:
        fields["event_type"] = event_type
    if error_code:
        fields["error_code"] = error_code
    if extra:
        fields["context"] = {key: _context_value(value) for key, value in extra.items()}

    getattr(logger, level, logger.info)(msg, extra=fields)
