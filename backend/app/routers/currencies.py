# backend/app/routers/currencies.py
"""
Exchange rate endpoints.

- GET    /currencies/rates        - List all directed rates
- POST   /currencies/rates        - Create or replace a pair's rate
- PUT    /currencies/rates/{id}   - Change a rate
- DELETE /currencies/rates/{id}   - Remove a rate
- GET    /currencies/convert      - Convert an amount

Rates are directed (USD→EUR does not imply EUR→USD). Conversions with no
matching rate return the amount unchanged with `rate_found: false`.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_currency_converter, get_currency_rate_service, get_current_user
from app.middleware.rate_limit import limiter, RATE_LIMIT_DEFAULT, RATE_LIMIT_WRITE
from app.models import User
from app.schemas.currencies import (
    ConversionResponse,
    CurrencyRateResponse,
    CurrencyRateUpdate,
    CurrencyRateUpsert,
)
from app.services.currency_converter import CurrencyConverter, CurrencyRateService

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/currencies",
    tags=["Currencies"],
)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/rates", response_model=list[CurrencyRateResponse])
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_rates(
        request: Request,
        db: Session = Depends(get_db),
        service: CurrencyRateService = Depends(get_currency_rate_service),
        current_user: User = Depends(get_current_user),
) -> list[CurrencyRateResponse]:
    return [CurrencyRateResponse.model_validate(r) for r in service.list_rates(db)]


@router.post("/rates", response_model=CurrencyRateResponse, status_code=status.HTTP_200_OK)
@limiter.limit(RATE_LIMIT_WRITE)
def upsert_rate(
        request: Request,
        body: CurrencyRateUpsert,
        db: Session = Depends(get_db),
        service: CurrencyRateService = Depends(get_currency_rate_service),
        current_user: User = Depends(get_current_user),
) -> CurrencyRateResponse:
    """Create the pair, or replace its rate when it already exists."""
    record = service.upsert_rate(db, body.from_currency, body.to_currency, body.rate)
    return CurrencyRateResponse.model_validate(record)


@router.put("/rates/{rate_id}", response_model=CurrencyRateResponse)
@limiter.limit(RATE_LIMIT_WRITE)
def update_rate(
        request: Request,
        rate_id: int,
        body: CurrencyRateUpdate,
        db: Session = Depends(get_db),
        service: CurrencyRateService = Depends(get_currency_rate_service),
        current_user: User = Depends(get_current_user),
) -> CurrencyRateResponse:
    return CurrencyRateResponse.model_validate(service.update_rate(db, rate_id, body.rate))


@router.delete("/rates/{rate_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(RATE_LIMIT_WRITE)
def delete_rate(
        request: Request,
        rate_id: int,
        db: Session = Depends(get_db),
        service: CurrencyRateService = Depends(get_currency_rate_service),
        current_user: User = Depends(get_current_user),
) -> None:
    service.delete_rate(db, rate_id)


@router.get("/convert", response_model=ConversionResponse)
@limiter.limit(RATE_LIMIT_DEFAULT)
def convert(
        request: Request,
        amount: Decimal = Query(...),
        from_currency: str = Query(..., alias="from", min_length=3, max_length=3),
        to_currency: str = Query(..., alias="to", min_length=3, max_length=3),
        db: Session = Depends(get_db),
        converter: CurrencyConverter = Depends(get_currency_converter),
        current_user: User = Depends(get_current_user),
) -> ConversionResponse:
    result = converter.convert(db, amount, from_currency, to_currency)
    return ConversionResponse(result=result.amount, rate=result.rate, rate_found=result.rate_found)
