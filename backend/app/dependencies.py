# backend/app/dependencies.py
"""
FastAPI dependencies: process-wide service singletons and the current user.

Construction order mirrors the wiring:

    YahooFinanceProvider ──► PriceOracle ──► ValuationService ──► DailyWealthService
                         CurrencyConverter ─┘

The provider is built here and handed to the oracle, never the other way
round, so tests replace it with app.dependency_overrides[get_market_data_provider].
ImportService must stay a singleton because its per-account locks live on
the instance.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models import User
from app.services.auth.jwt_handler import JWTHandler
from app.services.currency_converter import CurrencyConverter, CurrencyRateService
from app.services.exceptions import InvalidCredentialsError, TokenExpiredError
from app.services.importer import ImportService
from app.services.market_data import MarketDataProvider, PriceOracle, YahooFinanceProvider
from app.services.valuation import DailyWealthService, ValuationService

logger = logging.getLogger(__name__)

# auto_error=False so a missing header reaches our 401 envelope instead of FastAPI's 403
_bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# SERVICE SINGLETONS
# =============================================================================

@lru_cache(maxsize=1)
def get_market_data_provider() -> MarketDataProvider:
    logger.debug("Creating YahooFinanceProvider")
    return YahooFinanceProvider(timeout=settings.market_data_timeout_seconds)


@lru_cache(maxsize=1)
def get_price_oracle() -> PriceOracle:
    """Quote cache shared by every request, the summary and the snapshotter."""
    return PriceOracle(
        provider=get_market_data_provider(),
        ttl_seconds=settings.price_cache_ttl_seconds,
        max_workers=settings.market_data_max_workers,
        timeout_seconds=settings.market_data_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_currency_converter() -> CurrencyConverter:
    return CurrencyConverter()


@lru_cache(maxsize=1)
def get_currency_rate_service() -> CurrencyRateService:
    return CurrencyRateService()


@lru_cache(maxsize=1)
def get_valuation_service() -> ValuationService:
    return ValuationService(price_oracle=get_price_oracle(), converter=get_currency_converter())


@lru_cache(maxsize=1)
def get_daily_wealth_service() -> DailyWealthService:
    return DailyWealthService(valuation_service=get_valuation_service())


@lru_cache(maxsize=1)
def get_import_service() -> ImportService:
    return ImportService()


# =============================================================================
# AUTHENTICATION
# =============================================================================

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """
    Resolve the bearer token to a User row.

    Raises:
        HTTPException 401: Missing, invalid or expired token, or a token
            whose user no longer exists
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        claims = JWTHandler.validate_access_token(credentials.credentials)
    except TokenExpiredError:
        raise _unauthorized("Token has expired")
    except InvalidCredentialsError as e:
        raise _unauthorized(str(e))

    user = db.get(User, int(claims["sub"]))
    if user is None:
        raise _unauthorized("User not found")
    return user
