"""
Structured JSON logging for siteflow.

Every record leaves the ``siteflow`` logger as one JSON object per line.
Request-scoped fields (who is acting, on which request) live in
``LogContext`` and are stamped onto every record emitted while they are
bound; per-call data travels in ``extra``.

    logger = get_logger("modules.indent.service")
    with LogContext.bind(actor_role="pm", actor_name="meena"):
        logger.info("indent_transition_applied", extra={"status": "QS_Analysis"})
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "log_operation",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_context: ContextVar[Mapping[str, str]] = ContextVar("siteflow_log_context", default={})


class LogContext:
    """Request-scoped log fields, isolated per thread and per task."""

    FIELD_NAMES = (
        "correlation_id",
        "request_id",
        "actor_role",
        "actor_name",
        "trace_id",
    )

    @classmethod
    def _merged(cls, fields: Mapping[str, Any]) -> dict[str, str]:
        unknown = sorted(set(fields) - set(cls.FIELD_NAMES))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields for the rest of the current context; None leaves a field as is."""
        _context.set(cls._merged(fields))

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore the previous ones."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, then exception details."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _envelope(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # SiteflowError subclasses keep their context as public attributes
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------------

_ROOT = "siteflow"


def get_logger(name: str) -> logging.Logger:
    """Logger ``siteflow.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


_ops_logger = get_logger("ops")


@contextmanager
def log_operation(operation: str, **extra: Any) -> Iterator[None]:
    """Log how long the wrapped block took, and whether it raised.

    Emits ``operation_completed`` or ``operation_failed`` at DEBUG with
    ``duration_ms``; the exception itself is re-raised untouched.
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as exc:
        _ops_logger.debug(
            "operation_failed",
            extra={
                **extra,
                "operation": operation,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                "error_type": type(exc).__name__,
            },
        )
        raise
    _ops_logger.debug(
        "operation_completed",
        extra={
            **extra,
            "operation": operation,
            "duration_ms": round((time.perf_counter() - started) * 1000, 3),
        },
    )


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``siteflow`` logger.  Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
