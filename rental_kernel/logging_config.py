"""
Structured logging for the rental kernel.

Every record under the ``rental_kernel`` logger is written as one JSON object:

    {"ts": "...", "level": "INFO", "logger": "rental_kernel.services.payment",
     "message": "payment_confirmed", "correlation_id": "...", "actor_id": "...",
     "payment_id": "...", "amount": "1000000"}

The envelope (ts, level, logger, message) comes first, then the request
context bound through ``LogContext``, then the record's ``extra`` fields.
Exceptions add ``exc_type``/``exc_message``, the ``code`` and public
attributes of RentalKernelError subclasses (as ``exc_<name>``), and the
traceback.

Context:
    ``LogContext`` keeps one immutable mapping per execution context
    (ContextVar), so threads and asyncio tasks never see each other's
    fields.  The facade binds correlation_id/actor_id and the entity ids it
    works on; the sweep runner binds correlation_id/sweep.
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
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

_LOGGER_PREFIX = "rental_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "tenant_id",
    "contract_id",
    "sweep",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar("rental_log_context", default=_EMPTY)


def _merged(current: Mapping[str, str], fields: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
    updated = dict(current)
    updated.update({k: str(v) for k, v in fields.items() if v is not None})
    return MappingProxyType(updated)


class LogContext:
    """Request-scoped fields merged into every structured log line."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the rest of the current context; None values are skipped."""
        _context.set(_merged(_context.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields inside a ``with`` block and restore the previous ones on exit."""
        token = _context.set(_merged(_context.get(), fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, exc_info) -> dict[str, Any]:
        exc = exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``rental_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``rental_kernel`` logger.

    Only the first call has any effect until ``reset_logging()``.  Records do
    not propagate to the root logger, so host applications keep their own
    format for their own loggers.

    Args:
        level: Level number or name ("DEBUG", "INFO", ...).
        stream: Stream for the default StreamHandler (stderr when None).
        handler: Use this handler instead of a StreamHandler.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again (tests only)."""
    global _configured
    with _configure_lock:
        _configured = False
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
