# backend/app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

This package contains all Pydantic schemas organized by domain:
- currencies: Exchange rate CRUD and conversion
- errors: Error response formats
- prices: Quotes, history, dashboard and daily wealth
- transactions: CSV import/detect responses
- validators: Reusable validation functions (symbol, currency)

Usage:
    from app.schemas import QuoteResponse, DashboardSummaryResponse
    from app.schemas import ImportResultResponse
    from app.schemas import CurrencyRateResponse
"""

from app.schemas.currencies import (
    CurrencyRateUpsert,
    CurrencyRateUpdate,
    CurrencyRateResponse,
    ConversionResponse,
)
from app.schemas.errors import ErrorDetail, ValidationErrorDetail
from app.schemas.prices import (
    QuoteResponse,
    QuoteErrorResponse,
    QuoteBatchRequest,
    SymbolMatchResponse,
    PriceBarResponse,
    AccountSummaryResponse,
    DashboardSummaryResponse,
    HistoryPointResponse,
    DailyWealthResponse,
    DailyWealthSnapshotResponse,
)
from app.schemas.transactions import ImportResultResponse, DetectResponse

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Prices
    "QuoteResponse",
    "QuoteErrorResponse",
    "QuoteBatchRequest",
    "SymbolMatchResponse",
    "PriceBarResponse",
    # Valuation
    "AccountSummaryResponse",
    "DashboardSummaryResponse",
    "HistoryPointResponse",
    "DailyWealthResponse",
    "DailyWealthSnapshotResponse",
    # Transactions
    "ImportResultResponse",
    "DetectResponse",
    # Currencies
    "CurrencyRateUpsert",
    "CurrencyRateUpdate",
    "CurrencyRateResponse",
    "ConversionResponse",
]
