# backend/app/utils/context.py
"""
Correlation ID of the request currently being served.

A ContextVar follows the request through await points and into
threadpool-run sync endpoints (Starlette copies the context), so
CorrelationIdFilter can stamp it on log records from any layer.
"""

from contextvars import ContextVar

_current_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _current_correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _current_correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    """Unbind after the response; None outside a request."""
    _current_correlation_id.set(None)
