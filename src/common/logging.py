"""JSON logging for the leave approval service.

Every record is one JSON object on stdout. Fields passed through ``extra``
become top-level keys. Values under secret-bearing keys (callback tokens,
authorization headers, API keys) are masked before rendering.

Helpers:
    - log_transition: one workflow state change of a leave request
    - log_audit: an action taken by an identified actor
    - log_error: a failure, correlated by request_id
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_LEVEL_ENV = "LOG_LEVEL"

# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

_MASKED_KEYS = frozenset({"token", "authorization", "api_key", "jwt_secret"})
MASK = "***"


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or value is None:
                continue
            payload[key] = MASK if key.lower() in _MASKED_KEYS else value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=True)


def _level_from_env(default: int) -> int:
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def _ensure_configured(level: int) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.setLevel(_level_from_env(level))
    root.addHandler(handler)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a logger writing JSON to stdout.

    The root handler is installed on first use unless the host (uvicorn,
    pytest) already configured one. LOG_LEVEL overrides ``level``.
    """
    _ensure_configured(level)
    return logging.getLogger(name)


def log_transition(
    logger: logging.Logger,
    *,
    request_id: str,
    from_state: Optional[str],
    to_state: str,
    **context: Any,
) -> None:
    """Log a workflow transition of one leave request."""
    logger.info(
        f"{from_state or 'NEW'} -> {to_state}",
        extra={
            "event": "transition",
            "request_id": request_id,
            "from_state": from_state,
            "to_state": to_state,
            **context,
        },
    )


def log_audit(
    logger: logging.Logger,
    *,
    actor: Optional[str],
    action: str,
    target: Optional[str] = None,
    status: str = "succeeded",
    **context: Any,
) -> None:
    """Log who did what to which leave request."""
    logger.info(
        f"{action} {status}",
        extra={
            "event": "audit",
            "actor": actor,
            "action": action,
            "target": target,
            "outcome": status,
            **context,
        },
    )


def log_error(
    logger: logging.Logger,
    message: str,
    *,
    request_id: Optional[str] = None,
    error: Optional[BaseException] = None,
    **context: Any,
) -> None:
    """Log a failure with its traceback, if any."""
    if error is not None:
        context.setdefault("error_type", type(error).__name__)
    logger.error(
        message,
        extra={"event": "error", "request_id": request_id, **context},
        exc_info=error,
    )
