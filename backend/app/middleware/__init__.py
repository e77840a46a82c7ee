# backend/app/middleware/__init__.py
"""
ASGI middleware wired up in app/main.py.

Routers import their rate-limit decorators and limit strings straight from
app.middleware.rate_limit.
"""

from app.middleware.correlation import CorrelationIdMiddleware
from app.middleware.rate_limit import (
    RATE_LIMIT_HEALTH,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)

__all__ = [
    "CorrelationIdMiddleware",
    "RATE_LIMIT_HEALTH",
    "SlowAPIMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
