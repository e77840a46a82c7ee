# backend/app/services/market_data/__init__.py
"""
Quotes and price history.

    PriceOracle  (price_cache table: TTL, stale fallback, batch fetch)
      └── MarketDataProvider  (ABC with retry)
            └── YahooFinanceProvider
"""

from app.services.market_data.base import (
    HistoricalPricesResult,
    MarketDataProvider,
    OHLCVData,
    Quote,
    SymbolMatch,
)
from app.services.market_data.price_oracle import PriceOracle, QuoteError, QuoteResult
from app.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    "HistoricalPricesResult",
    "MarketDataProvider",
    "OHLCVData",
    "PriceOracle",
    "Quote",
    "QuoteError",
    "QuoteResult",
    "SymbolMatch",
    "YahooFinanceProvider",
]
