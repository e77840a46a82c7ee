# backend/app/schemas/currencies.py
"""
Pydantic schemas for exchange rate management and conversion.

Rates are directed: 1 from_currency = rate to_currency.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.validators import validate_currency


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CurrencyRateUpsert(BaseModel):
    """Create a rate, or replace the rate of an existing pair."""

    from_currency: str = Field(..., min_length=3, max_length=3, description="e.g. USD")
    to_currency: str = Field(..., min_length=3, max_length=3, description="e.g. EUR")
    rate: Decimal = Field(..., gt=0, description="1 from_currency = rate to_currency")

    @field_validator("from_currency", "to_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return validate_currency(v)


class CurrencyRateUpdate(BaseModel):
    rate: Decimal = Field(..., gt=0)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class CurrencyRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_currency: str
    to_currency: str
    rate: Decimal
    updated_at: dt.datetime | None = None


class ConversionResponse(BaseModel):
    """
    Result of a single conversion.

    A missing pair is not an error: the amount comes back unchanged with
    rate 1 and rate_found false.
    """

    result: Decimal
    rate: Decimal
    rate_found: bool
