# backend/app/services/market_data/price_oracle.py
"""
Price oracle: cached, fault-tolerant access to market prices.

Sits between the valuation code and a MarketDataProvider:

    ValuationService ──► PriceOracle ──► MarketDataProvider (Yahoo)
                              │
                              └──► price_cache table (TTL + stale fallback)

Rules:
- A cache entry younger than the TTL is served without a provider call
- A successful fetch upserts the cache entry
- A failed fetch falls back to the last cached price, flagged stale
- No cache entry and no provider: PriceUnavailableError (single quote)
  or a QuoteError placeholder (batch)

Every provider call runs on a worker thread with its own deadline
(timeout_seconds, counted from when the call starts). Batch calls fan out
over a bounded pool, so a queued symbol is not charged for the time it
spent waiting behind others.
Worker threads never touch the database session; cache reads and writes
happen on the calling thread.
"""

import logging
import math
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import date, datetime, timezone, timedelta
from decimal import Decimal
from typing import Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import PriceCache
from app.services.constants import (
    DEFAULT_QUOTE_CURRENCY,
    EXTERNAL_API_TIMEOUT_SECONDS,
    MARKET_DATA_MAX_WORKERS,
    PRICE_CACHE_TTL_SECONDS,
)
from app.services.exceptions import PriceUnavailableError, ProviderUnavailableError
from app.services.market_data.base import (
    MarketDataProvider,
    OHLCVData,
    Quote,
    SymbolMatch,
)
from app.utils.date_utils import resolve_chart_period

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class QuoteResult:
    """A price the caller can value against, fresh or stale."""

    symbol: str
    price: Decimal
    currency: str
    name: str
    change_percent: Decimal
    updated_at: datetime
    stale: bool = False


@dataclass(frozen=True)
class QuoteError:
    """Placeholder for a symbol with no price at all (batch calls only)."""

    symbol: str
    error: str
    price: Decimal = Decimal("0")


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on read; treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _from_cache(entry: PriceCache, stale: bool = False) -> QuoteResult:
    return QuoteResult(
        symbol=entry.symbol,
        price=Decimal(entry.price),
        currency=entry.currency or DEFAULT_QUOTE_CURRENCY,
        name=entry.name or entry.symbol,
        change_percent=Decimal(entry.change_percent or 0),
        updated_at=_as_utc(entry.updated_at),
        stale=stale,
    )


# =============================================================================
# PRICE ORACLE
# =============================================================================

class PriceOracle:
    """
    Cached price access with graceful degradation.

    The provider is injected; the oracle never builds its own client, so a
    single provider instance (and its retry policy) is shared app-wide.

    Example:
        oracle = PriceOracle(YahooFinanceProvider())
        result = oracle.quote(db, "AAPL")
        batch = oracle.quotes(db, ["AAPL", "BTC-USD"])
    """

    def __init__(
            self,
            provider: MarketDataProvider,
            ttl_seconds: int = PRICE_CACHE_TTL_SECONDS,
            max_workers: int = MARKET_DATA_MAX_WORKERS,
            timeout_seconds: float = EXTERNAL_API_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_workers = max(1, max_workers)
        self._timeout = timeout_seconds

    @property
    def provider(self) -> MarketDataProvider:
        return self._provider

    # =========================================================================
    # QUOTES
    # =========================================================================

    def quote(self, db: Session, symbol: str) -> QuoteResult:
        """
        Return the price of one symbol.

        Raises:
            PriceUnavailableError: Provider failed and nothing is cached
        """
        symbol = symbol.strip().upper()
        cached = db.get(PriceCache, symbol)

        if cached is not None and self._is_fresh(cached):
            logger.debug(f"Price cache hit for {symbol}")
            return _from_cache(cached)

        try:
            fetched = self._call_with_deadline(self._provider.get_quote, symbol)
        except Exception as e:
            if cached is not None:
                logger.warning(f"Serving stale price for {symbol}: {e}")
                return _from_cache(cached, stale=True)
            raise PriceUnavailableError(symbol=symbol, reason=str(e)) from e

        return self._store(db, fetched)

    def quotes(self, db: Session, symbols: list[str]) -> dict[str, QuoteResult | QuoteError]:
        """
        Return prices for many symbols, isolating failures per symbol.

        Never raises for an individual symbol: a failure degrades to the
        stale cache entry or to a QuoteError with price 0.
        """
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))
        if not unique:
            return {}

        cache = {
            row.symbol: row
            for row in db.scalars(select(PriceCache).where(PriceCache.symbol.in_(unique)))
        }

        results: dict[str, QuoteResult | QuoteError] = {}
        to_fetch: list[str] = []
        for symbol in unique:
            entry = cache.get(symbol)
            if entry is not None and self._is_fresh(entry):
                results[symbol] = _from_cache(entry)
            else:
                to_fetch.append(symbol)

        if to_fetch:
            logger.debug(f"Fetching {len(to_fetch)} quotes ({len(results)} cache hits)")
            fetched = self._fan_out(self._provider.get_quote, to_fetch)

            for symbol in to_fetch:
                outcome = fetched[symbol]
                if isinstance(outcome, Quote):
                    results[symbol] = self._store(db, outcome)
                    continue

                entry = cache.get(symbol)
                if entry is not None:
                    logger.warning(f"Serving stale price for {symbol}: {outcome}")
                    results[symbol] = _from_cache(entry, stale=True)
                else:
                    logger.warning(f"No price available for {symbol}: {outcome}")
                    results[symbol] = QuoteError(symbol=symbol, error=str(outcome))

        # Preserve the caller's order
        return {symbol: results[symbol] for symbol in unique}

    def cached_quote(self, db: Session, symbol: str) -> QuoteResult | None:
        """Return whatever is cached for the symbol, fresh or not. No fetch."""
        entry = db.get(PriceCache, symbol.strip().upper())
        if entry is None:
            return None
        return _from_cache(entry, stale=not self._is_fresh(entry))

    # =========================================================================
    # HISTORY / SEARCH
    # =========================================================================

    def history(self, symbol: str, period: str | None = None) -> list[OHLCVData]:
        """
        Return chart bars for a named period ("1w", "1m", ..., "max").

        Raises:
            TickerNotFoundError, RateLimitError
            ProviderUnavailableError: Also when the call misses its deadline
        """
        start, interval = resolve_chart_period(period)
        result = self._call_with_deadline(self._provider.get_history, symbol.strip().upper(), start, interval)
        return result.prices

    def close_series(
            self,
            symbols: list[str],
            start_date: date,
            interval: str,
    ) -> dict[str, dict[date, Decimal] | Exception]:
        """
        Fetch close-price series for many symbols in parallel.

        Returns, per symbol, either {day: close} or the exception that
        prevented fetching it.
        """
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))

        def fetch(symbol: str) -> dict[date, Decimal]:
            return self._provider.get_history(symbol, start_date, interval).closes_by_date()

        return self._fan_out(fetch, unique)

    def search(self, query: str) -> list[SymbolMatch]:
        return self._call_with_deadline(self._provider.search, query)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _is_fresh(self, entry: PriceCache) -> bool:
        if entry.updated_at is None:
            return False
        return datetime.now(timezone.utc) - _as_utc(entry.updated_at) < self._ttl

    def _store(self, db: Session, quote: Quote) -> QuoteResult:
        """Upsert the cache entry for a freshly fetched quote."""
        now = datetime.now(timezone.utc)
        entry = db.get(PriceCache, quote.symbol)
        if entry is None:
            entry = PriceCache(symbol=quote.symbol)
            db.add(entry)

        entry.price = quote.price
        entry.currency = quote.currency
        entry.name = quote.name
        entry.change_percent = quote.change_percent
        entry.updated_at = now

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Failed to cache price for {quote.symbol}: {e}")

        return QuoteResult(
            symbol=quote.symbol,
            price=quote.price,
            currency=quote.currency,
            name=quote.name,
            change_percent=quote.change_percent,
            updated_at=now,
        )

    def _timed_out(self, symbol: str) -> PriceUnavailableError:
        logger.warning(f"Market data request for {symbol} timed out after {self._timeout}s")
        return PriceUnavailableError(symbol=symbol, reason="request timed out")

    def _call_with_deadline(self, func: Callable[..., T], *args) -> T:
        """
        Run one provider call on a worker thread, giving up after timeout_seconds.

        A call that misses the deadline keeps running in the background; its
        result is discarded.
        """
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(func, *args)
            try:
                return future.result(timeout=self._timeout)
            except FutureTimeoutError:
                logger.warning(f"{self._provider.name} call {args} timed out after {self._timeout}s")
                raise ProviderUnavailableError(
                    provider=self._provider.name,
                    reason=f"request timed out after {self._timeout}s",
                )
        finally:
            executor.shutdown(wait=False)

    def _fan_out(
            self,
            func: Callable[[str], T],
            symbols: list[str],
    ) -> dict[str, T | Exception]:
        """
        Run func(symbol) for every symbol on a bounded pool.

        Each call gets timeout_seconds from the moment a worker picks it up.
        The batch as a whole is capped at one deadline per wave of workers,
        so symbols stuck behind hung calls still come back. Anything past
        its deadline is reported as PriceUnavailableError and its worker is
        left to finish in the background.
        """
        outcomes: dict[str, T | Exception] = {}
        if not symbols:
            return outcomes

        workers = min(self._max_workers, len(symbols))
        batch_deadline = time.monotonic() + math.ceil(len(symbols) / workers) * self._timeout
        started: dict[str, float] = {}

        def run(symbol: str) -> T:
            started[symbol] = time.monotonic()
            return func(symbol)

        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = {executor.submit(run, symbol): symbol for symbol in symbols}
            pending = set(futures)

            while pending:
                call_deadlines = [
                    started[futures[fut]] + self._timeout for fut in pending if futures[fut] in started
                ]
                next_deadline = min(call_deadlines + [batch_deadline])
                done, pending = wait(
                    pending,
                    timeout=max(0.0, next_deadline - time.monotonic()),
                    return_when=FIRST_COMPLETED,
                )

                for fut in done:
                    try:
                        outcomes[futures[fut]] = fut.result()
                    except Exception as e:
                        outcomes[futures[fut]] = e

                now = time.monotonic()
                for fut in list(pending):
                    symbol = futures[fut]
                    begun = started.get(symbol)
                    if now >= batch_deadline or (begun is not None and now - begun >= self._timeout):
                        pending.discard(fut)
                        outcomes[symbol] = self._timed_out(symbol)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return outcomes
