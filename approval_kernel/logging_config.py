"""
Structured JSON logging for the approval kernel.

Every record under the ``approval_kernel`` logger namespace is written as a
single JSON object per line.  Request-scoped fields (tenant, actor, entity,
correlation id) live in context variables: a service binds them once at the
start of an action and every log line emitted inside carries them, across
threads and asyncio tasks alike.

Usage::

    logger = get_logger("services.workflow_engine")
    with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
        logger.info("approval_step_approved", extra={"level_order": 2})
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
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

ROOT_LOGGER_NAME = "approval_kernel"

_CONTEXT_FIELDS = ("correlation_id", "tenant_id", "actor_id", "entity_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"approval_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise ValueError(f"Unknown log context field: {name}") from None


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """Request-scoped log fields: correlation_id, tenant_id, actor_id, entity_id."""

    FIELDS = _CONTEXT_FIELDS

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set fields for the rest of the current context. ``None`` is ignored."""
        for name, value in fields.items():
            if value is not None:
                _context_var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _context_vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields inside a ``with`` block and restore them on exit."""
        tokens = [
            _context_var(name).set(value)
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for token in reversed(tokens):
                token.var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        # extra={} fields never override base or context fields
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # ApprovalKernelError subclasses keep their context as attributes
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "code":
                fields[f"exc_{key}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``approval_kernel.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``approval_kernel`` logger.

    Only the first call has an effect.  ``level`` accepts a logging
    constant or a name such as ``settings.log_level``.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False
        root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging() again. Tests only."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
