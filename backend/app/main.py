# backend/app/main.py
"""
FastAPI application: middleware, error envelopes, routers and health checks.

Run with:
    uvicorn app.main:app --reload        (from backend/)
"""

import logging
from typing import Any, Callable, NamedTuple

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import get_db
from app.dependencies import get_market_data_provider
from app.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_HEALTH,
)
from app.routers import currencies_router, prices_router, transactions_router
from app.schemas.errors import ErrorDetail, ValidationErrorDetail
from app.services.exceptions import (
    AccountNotFoundError,
    AuthenticationError,
    ImportFormatError,
    MarketDataError,
    NotFoundError,
    PriceUnavailableError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
    TokenExpiredError,
    ValidationError,
)
from app.services.market_data import MarketDataProvider
from app.utils import setup_logging

logger = logging.getLogger(__name__)

setup_logging()

app = FastAPI(
    title=settings.app_name,
    description="Multi-account, multi-currency portfolio valuation and CSV import API",
    version="0.1.0",
)

# =============================================================================
# MIDDLEWARE (last added runs first)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Outermost, so rate-limit rejections are logged with an ID too
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# ERROR ENVELOPES
# =============================================================================

def _error_response(
        status_code: int,
        error: str,
        message: str,
        details: dict | None = None,
        headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(error=error, message=message, details=details).model_dump(),
        headers=headers,
    )


class DomainErrorMapping(NamedTuple):
    exc_class: type[ServiceError]
    status_code: int
    log_level: int = logging.WARNING
    details: Callable[[Any], dict | None] | None = None


# Starlette dispatches along the MRO, so subclasses listed here win over
# their bases (AccountNotFoundError over NotFoundError, and so on).
DOMAIN_ERRORS: list[DomainErrorMapping] = [
    DomainErrorMapping(AccountNotFoundError, 404, details=lambda e: {"account_id": e.account_id}),
    DomainErrorMapping(
        NotFoundError, 404,
        details=lambda e: (
            {"resource_type": e.resource_type, "resource_id": e.resource_id} if e.resource_type else None
        ),
    ),
    DomainErrorMapping(TickerNotFoundError, 404, details=lambda e: {"ticker": e.ticker}),
    DomainErrorMapping(PriceUnavailableError, 404, details=lambda e: {"symbol": e.symbol}),
    DomainErrorMapping(
        RateLimitError, 429,
        details=lambda e: {"retry_after": e.retry_after} if e.retry_after else None,
    ),
    DomainErrorMapping(ProviderUnavailableError, 503, logging.ERROR),
    DomainErrorMapping(MarketDataError, 502, logging.ERROR),
    DomainErrorMapping(ValidationError, 400, details=lambda e: {"field": e.field} if e.field else None),
    DomainErrorMapping(ImportFormatError, 400, details=lambda e: {"headers": e.headers} if e.headers else None),
    DomainErrorMapping(TokenExpiredError, 401, logging.INFO, details=lambda e: {"token_type": e.token_type}),
    DomainErrorMapping(AuthenticationError, 401),
    DomainErrorMapping(ServiceError, 500, logging.ERROR),
]


def _domain_handler(mapping: DomainErrorMapping):
    async def handler(request: Request, exc: ServiceError) -> JSONResponse:
        logger.log(mapping.log_level, f"{mapping.exc_class.__name__} on {request.url.path}: {exc}")
        return _error_response(
            mapping.status_code,
            mapping.exc_class.__name__,
            str(exc),
            mapping.details(exc) if mapping.details else None,
            headers={"WWW-Authenticate": "Bearer"} if mapping.status_code == 401 else None,
        )
    return handler


for _mapping in DOMAIN_ERRORS:
    app.add_exception_handler(_mapping.exc_class, _domain_handler(_mapping))

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

HTTP_ERROR_NAMES = {
    400: "BadRequestError",
    401: "UnauthorizedError",
    403: "ForbiddenError",
    404: "NotFoundError",
    405: "MethodNotAllowedError",
    409: "ConflictError",
    413: "PayloadTooLargeError",
    422: "ValidationError",
    429: "RateLimitError",
    500: "InternalServerError",
    503: "ServiceUnavailableError",
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Rewrap {"detail": ...} (routers and unknown routes) in the standard envelope."""
    return _error_response(
        exc.status_code,
        HTTP_ERROR_NAMES.get(exc.status_code, "HTTPError"),
        str(exc.detail) if exc.detail else "An error occurred",
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 with one {field, message, type} entry per pydantic error."""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=details).model_dump(),
    )


# =============================================================================
# ROUTERS
# =============================================================================

app.include_router(prices_router)
app.include_router(transactions_router)
app.include_router(currencies_router)


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(
        request: Request,
        db: Session = Depends(get_db),
        provider: MarketDataProvider = Depends(get_market_data_provider),
):
    """
    Database and market data status.

    - 200 `healthy`: both reachable
    - 200 `degraded`: provider down (cached prices still serve the dashboard)
    - 503 `unhealthy`: database unreachable
    """
    checks: dict[str, dict] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy", "critical": True}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = {"status": "unhealthy", "critical": True, "error": str(e)}

    provider_up = provider.is_available()
    checks["market_data"] = {
        "status": "healthy" if provider_up else "unhealthy",
        "critical": False,
        "provider": provider.name,
    }

    if checks["database"]["status"] != "healthy":
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
    return {"status": "healthy" if provider_up else "degraded", "checks": checks}


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """Process is up; dependencies are not checked."""
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """503 until the database answers."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not_ready", "error": "Database unavailable"})
    return {"status": "ready"}
