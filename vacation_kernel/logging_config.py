"""
Structured JSON logging for the vacation kernel.

Every record under the ``vacation_kernel`` logger namespace is rendered as
one JSON object per line:

    {"ts": ..., "level": "INFO", "logger": "vacation_kernel.services.workflow_engine",
     "message": "vacation_transition_applied", "request_id": ..., "actor_role": "hr",
     "from_status": "pending", "to_status": "hr_review", ...}

Messages are snake_case event names; the data travels in ``extra`` and in
the request-scoped ``LogContext`` (who is acting on which request).
Kernel exceptions logged with ``exc_info`` contribute their ``code`` and
structured attributes as ``exc_*`` keys.
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "vacation_kernel"

# ---------------------------------------------------------------------------
# Request-scoped context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "request_id",
    "actor_id",
    "actor_role",
)

_context: ContextVar[dict[str, str]] = ContextVar("vacation_log_context", default={})


class LogContext:
    """Fields merged into every log record emitted in the current context.

    Backed by a single ``ContextVar`` holding an immutable snapshot, so
    threads and asyncio tasks each see their own values.
    """

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        request_id: str | None = None,
        actor_id: str | None = None,
        actor_role: str | None = None,
    ) -> None:
        """Set context fields. ``None`` leaves a field unchanged."""
        _context.set(cls._merged(
            correlation_id=correlation_id,
            request_id=request_id,
            actor_id=actor_id,
            actor_role=actor_role,
        ))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore.

        Names outside the known context fields are ignored.
        """
        known = {k: v for k, v in fields.items() if k in _CONTEXT_FIELDS}
        token = _context.set(cls._merged(**known))
        try:
            yield cls
        finally:
            _context.reset(token)

    @staticmethod
    def _merged(**fields: str | None) -> dict[str, str]:
        current = dict(_context.get())
        current.update({k: v for k, v in fields.items() if v is not None})
        return current


# ---------------------------------------------------------------------------
# JSON rendering
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in via ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line.

    Precedence on key clashes: envelope, then ``LogContext``, then
    ``extra``.  An ``extra`` key never overwrites a context field.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``vacation_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``vacation_kernel`` logger.

    Only the first call has an effect; later calls return immediately so
    library entry points can call it unconditionally.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
