# backend/app/middleware/rate_limit.py
"""
Per-client request limits (slowapi, in-memory storage).

Quote, history and search routes share RATE_LIMIT_MARKET_DATA so one
client cannot drain the Yahoo Finance quota; CSV uploads get the
tightest budget. Limit strings live in app/services/constants.py.

Clients are keyed by IP. Forwarding headers are honoured only when the
peer is a configured proxy (or TRUST_PROXY_HEADERS is set).
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import settings
from app.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_HEALTH,
    RATE_LIMIT_MARKET_DATA,
    RATE_LIMIT_UPLOAD,
    RATE_LIMIT_WRITE,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


def client_key(request: Request) -> str:
    """Rate limit key: the originating client IP."""
    peer = get_remote_address(request)
    if not (settings.trust_proxy_headers or peer in settings.trusted_proxy_ips):
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For", "")
    origin = forwarded_for.split(",")[0].strip()
    return origin or request.headers.get("X-Real-IP") or peer


limiter = Limiter(
    key_func=client_key,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=settings.rate_limit_enabled,
)


def _retry_after(exc: RateLimitExceeded) -> int:
    """Window length of the limit that was hit, in seconds."""
    item = getattr(getattr(exc, "limit", None), "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    return int(item.get_expiry())


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the standard error envelope, with Retry-After."""
    retry_after = _retry_after(exc)
    logger.warning(f"Rate limit hit by {client_key(request)} on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests ({exc.detail}). Retry in {retry_after}s.",
            "details": {"retry_after": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )


__all__ = [
    "limiter",
    "client_key",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_WRITE",
    "RATE_LIMIT_MARKET_DATA",
    "RATE_LIMIT_UPLOAD",
    "RATE_LIMIT_HEALTH",
]
