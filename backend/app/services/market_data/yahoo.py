# backend/app/services/market_data/yahoo.py
"""
Yahoo Finance provider (yfinance).

- Quotes come from `Ticker.info`: regularMarketPrice, then currentPrice,
  then previousClose. Currency defaults to USD.
- History comes from `Ticker.history()` as a pandas DataFrame and is
  turned into OHLCVData, oldest first. Prices are unadjusted.
- Search uses `yf.Search(...).quotes`.

History and search pass the provider timeout to yfinance. `Ticker.info`
takes none, so PriceOracle bounds every call with its own deadline too.

yfinance raises bare exceptions, so failures are classified by message
text into TickerNotFoundError, RateLimitError or ProviderUnavailableError.
Yahoo's data is free, unofficially rate limited and can lag the market
by 15 minutes or more.
"""

import logging
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import pandas as pd
import yfinance as yf

from app.services.constants import DEFAULT_QUOTE_CURRENCY, SEARCH_MAX_RESULTS
from app.services.exceptions import (
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from app.services.market_data.base import (
    HistoricalPricesResult,
    MarketDataProvider,
    OHLCVData,
    Quote,
    SymbolMatch,
)

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("regularMarketPrice", "currentPrice", "previousClose")

# Lower-cased message fragments yfinance/requests use for each failure kind
NOT_FOUND_MARKERS = ("not found", "no data")
RATE_LIMIT_MARKERS = ("rate limit", "too many requests")

_PRICE_QUANTUM = Decimal("0.00000001")

# /health check: a liquid symbol, re-checked at most once a minute
AVAILABILITY_CHECK_SYMBOL = "SPY"
AVAILABILITY_CACHE_SECONDS = 60


def _decimal(value: Any) -> Decimal | None:
    """None for missing, NaN or non-numeric cells."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
        return Decimal(str(value)).quantize(_PRICE_QUANTUM)
    except (TypeError, ValueError, ArithmeticError):
        return None


def _integer(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return None if pd.isna(value) else int(value)
    except (TypeError, ValueError):
        return None


def _naive(index_value: Any) -> datetime:
    """DataFrame index entry (tz-aware Timestamp) to a naive datetime in exchange time."""
    if isinstance(index_value, pd.Timestamp):
        index_value = index_value.to_pydatetime()
    if isinstance(index_value, datetime):
        return index_value.replace(tzinfo=None)
    return datetime(index_value.year, index_value.month, index_value.day)


def price_from_info(info: dict | None) -> Decimal | None:
    """
    First positive price field of a Ticker.info dict.

    Unknown tickers still return an info dict, just without price fields.
    """
    for key in PRICE_FIELDS:
        price = _decimal((info or {}).get(key))
        if price is not None and price > 0:
            return price
    return None


class YahooFinanceProvider(MarketDataProvider):
    """
    MarketDataProvider backed by yfinance.

    Symbols are passed through in Yahoo's notation ("AAPL", "BTC-USD",
    "GC=F", "SAP.DE").

    Example:
        provider = YahooFinanceProvider(timeout=15)
        provider.get_quote("NVDA").price
        provider.get_history("NVDA", date(2024, 1, 1), interval="1wk").bars_fetched
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        self._last_check: tuple[float, bool] | None = None
        logger.info(f"YahooFinanceProvider ready (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # PUBLIC API (retried)
    # =========================================================================

    def get_quote(self, symbol: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, symbol.strip().upper())

    def get_history(
            self,
            symbol: str,
            start_date: date,
            interval: str = "1d",
            end_date: date | None = None,
    ) -> HistoricalPricesResult:
        return self._execute_with_retry(
            self._fetch_history, symbol.strip().upper(), start_date, interval, end_date
        )

    def search(self, query: str) -> list[SymbolMatch]:
        query = query.strip()
        if not query:
            return []
        return self._execute_with_retry(self._fetch_search, query)

    def is_available(self) -> bool:
        """Fetch a few days of SPY bars; the answer is cached for a minute."""
        now = time.monotonic()
        if self._last_check is not None and now - self._last_check[0] < AVAILABILITY_CACHE_SECONDS:
            return self._last_check[1]

        try:
            frame = yf.Ticker(AVAILABILITY_CHECK_SYMBOL).history(period="5d", timeout=self._timeout)
            available = frame is not None and not frame.empty
        except Exception as e:
            logger.warning(f"Yahoo availability check failed: {e}")
            available = False

        self._last_check = (now, available)
        return available

    # =========================================================================
    # SINGLE ATTEMPTS
    # =========================================================================

    def _fetch_quote(self, symbol: str) -> Quote:
        logger.debug(f"Requesting Yahoo quote for {symbol}")
        try:
            info = yf.Ticker(symbol).info
        except Exception as e:
            raise self._classify_error(e, symbol)

        price = price_from_info(info)
        if price is None:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)

        return Quote(
            symbol=symbol,
            price=price,
            currency=(info.get("currency") or DEFAULT_QUOTE_CURRENCY).upper(),
            name=info.get("shortName") or info.get("longName") or symbol,
            change_percent=_decimal(info.get("regularMarketChangePercent")) or Decimal("0"),
        )

    def _fetch_history(
            self,
            symbol: str,
            start_date: date,
            interval: str,
            end_date: date | None,
    ) -> HistoricalPricesResult:
        result = HistoricalPricesResult(symbol=symbol, interval=interval, from_date=start_date, to_date=end_date)

        params: dict[str, Any] = {
            "start": start_date.isoformat(),
            "interval": interval,
            "auto_adjust": False,
            "timeout": self._timeout,
        }
        if end_date is not None:
            # Yahoo treats end as exclusive
            params["end"] = (end_date + timedelta(days=1)).isoformat()

        try:
            ticker = yf.Ticker(symbol)
            frame = ticker.history(**params)
            if frame is None or frame.empty:
                if price_from_info(ticker.info) is None:
                    raise TickerNotFoundError(ticker=symbol, provider=self.name)
                logger.warning(f"Yahoo returned no {interval} bars for {symbol} since {start_date}")
                return result
        except MarketDataError:
            raise
        except Exception as e:
            raise self._classify_error(e, symbol)

        result.prices = self._frame_to_bars(frame)
        logger.debug(f"Yahoo returned {result.bars_fetched} {interval} bars for {symbol}")
        return result

    def _fetch_search(self, query: str) -> list[SymbolMatch]:
        try:
            found = yf.Search(query, max_results=SEARCH_MAX_RESULTS, timeout=self._timeout).quotes or []
        except Exception as e:
            raise self._classify_error(e, query)

        return [
            SymbolMatch(
                symbol=item["symbol"],
                name=item.get("shortname") or item.get("longname") or item["symbol"],
                type=item.get("quoteType"),
                exchange=item.get("exchDisp") or item.get("exchange"),
            )
            for item in found
            if item.get("symbol")
        ]

    # =========================================================================
    # CONVERSION
    # =========================================================================

    @staticmethod
    def _frame_to_bars(frame: pd.DataFrame) -> list[OHLCVData]:
        """Rows without a positive close are dropped; missing O/H/L fall back to the close."""
        bars: list[OHLCVData] = []
        for index_value, row in frame.iterrows():
            close = _decimal(row.get("Close"))
            if close is None or close <= 0:
                continue

            open_ = _decimal(row.get("Open")) or close
            high = _decimal(row.get("High")) or max(open_, close)
            low = _decimal(row.get("Low")) or min(open_, close)
            try:
                bars.append(OHLCVData(
                    timestamp=_naive(index_value),
                    open=open_,
                    high=high,
                    low=low,
                    close=close,
                    volume=_integer(row.get("Volume")),
                ))
            except ValueError as e:
                logger.warning(f"Skipping malformed bar at {index_value}: {e}")
        return bars

    def _classify_error(self, error: Exception, symbol: str) -> MarketDataError:
        """Turn a raw yfinance/requests exception into a domain exception."""
        text = str(error).lower()

        if any(marker in text for marker in NOT_FOUND_MARKERS):
            return TickerNotFoundError(ticker=symbol, provider=self.name)
        if any(marker in text for marker in RATE_LIMIT_MARKERS):
            return RateLimitError(provider=self.name)

        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))
