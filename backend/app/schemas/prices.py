# backend/app/schemas/prices.py
"""
Pydantic schemas for the /prices endpoints.

These schemas handle:
- Quotes (single and batch) and symbol search
- Single-symbol price history
- Dashboard summary and reconstructed portfolio history
- Daily wealth snapshots

Money and quantities are Decimal and serialize as JSON strings, which
keeps full precision on the wire. Never use float for money!
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.validators import validate_symbol
from app.services.constants import MAX_BATCH_SIZE


# =============================================================================
# QUOTE SCHEMAS
# =============================================================================

class QuoteResponse(BaseModel):
    """A fresh, fetched or stale quote."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    price: Decimal
    currency: str
    name: str
    change_percent: Decimal
    updated_at: dt.datetime
    stale: bool = Field(
        default=False,
        description="True when served from an expired cache entry after a failed fetch"
    )


class QuoteErrorResponse(BaseModel):
    """Batch placeholder for a symbol with no price at all."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    price: Decimal = Decimal("0")
    error: str


class QuoteBatchRequest(BaseModel):
    """Body of POST /prices/quotes."""

    symbols: list[str] = Field(
        ...,
        min_length=1,
        max_length=MAX_BATCH_SIZE,
        description="Symbols to quote (duplicates are collapsed)"
    )

    @field_validator("symbols")
    @classmethod
    def normalize_symbols(cls, v: list[str]) -> list[str]:
        return [validate_symbol(s) for s in v]


class SymbolMatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    type: str | None = None
    exchange: str | None = None


class PriceBarResponse(BaseModel):
    """One OHLCV bar of single-symbol history."""

    date: dt.datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int | None = None


# =============================================================================
# DASHBOARD SCHEMAS
# =============================================================================

class AccountSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: int
    account_name: str
    market_value: Decimal
    cost_basis: Decimal
    holdings_count: int


class DashboardSummaryResponse(BaseModel):
    """
    Instantaneous valuation across all accounts, in base currency.

    missing_rates lists "FROM→TO" pairs that had no rate and were converted
    at 1; stale_symbols and unpriced_symbols flag degraded prices.
    """

    total_wealth: Decimal
    total_cost: Decimal
    total_gain: Decimal
    total_gain_percent: Decimal
    base_currency: str
    holdings_count: int
    accounts: list[AccountSummaryResponse]
    missing_rates: list[str] = Field(default_factory=list)
    stale_symbols: list[str] = Field(default_factory=list)
    unpriced_symbols: list[str] = Field(default_factory=list)


class HistoryPointResponse(BaseModel):
    """One point of the reconstructed portfolio series."""

    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    value: Decimal
    cost: Decimal
    gain: Decimal


# =============================================================================
# DAILY WEALTH SCHEMAS
# =============================================================================

class DailyWealthResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    total_wealth: Decimal
    total_cost: Decimal
    base_currency: str
    details: dict = Field(default_factory=dict)


class DailyWealthSnapshotResponse(BaseModel):
    """Result of POST /prices/daily-wealth."""

    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    total_wealth: Decimal
    total_cost: Decimal
    base_currency: str
