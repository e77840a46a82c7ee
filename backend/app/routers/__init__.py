# backend/app/routers/__init__.py
"""
API routers for the Portfolio Tracker.

Each router handles a specific domain:
- prices: Quotes, price history, dashboard summary, portfolio history, daily wealth
- transactions: CSV import, format detection and export
- currencies: Exchange rate management and conversion
"""

from app.routers.currencies import router as currencies_router
from app.routers.prices import router as prices_router
from app.routers.transactions import router as transactions_router

__all__ = [
    "prices_router",
    "transactions_router",
    "currencies_router",
]
