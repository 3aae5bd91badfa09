"""Structured JSON logging for the workflow kernel.

Every record becomes one JSON line carrying the request-scoped fields bound
in ``LogContext`` (correlation id, caller, operation and the aggregate ids
the operation touches), any ``extra=`` fields, and the structured attributes
of a WorkflowKernelError passed through ``exc_info``.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """Request-scoped log fields, isolated per thread and per task."""

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"workflow_log_{name}", default=None)
        for name in (
            "correlation_id",
            "actor_id",
            "operation",
            "transaction_id",
            "approval_id",
        )
    }

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Bound fields that currently hold a value."""
        return {
            name: value
            for name, var in cls._vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """
        Bind fields for the duration of the block, then restore the
        previous values.  None leaves a field untouched; other values are
        stored as strings.  Unknown field names raise KeyError.
        """
        tokens = [
            (cls._vars[name], cls._vars[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else on a record came from extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Datetimes as ISO strings, enums by value, anything else via str()."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, then context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_ROOT = "workflow_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``workflow_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler (stderr unless ``handler`` is given) to the
    ``workflow_kernel`` logger.  Only the first call has any effect.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    handler = handler or logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop the handlers and allow configure_logging again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
