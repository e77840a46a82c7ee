# backend/app/services/market_data/base.py
"""
Provider contract for quotes, history bars and symbol search.

The PriceOracle only talks to this interface; the concrete provider is
chosen in app/dependencies.py and a MockMarketDataProvider stands in for
it in tests. Transient failures are retried here, once, for every
provider.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.services.exceptions import ProviderUnavailableError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (ProviderUnavailableError, RateLimitError)


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Last price of one symbol in its trading currency.

    change_percent is the day move in percent (1.25 means +1.25%).
    """

    symbol: str
    price: Decimal
    currency: str
    name: str
    change_percent: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not self.symbol or not self.currency:
            raise ValueError("Quote needs a symbol and a currency")


@dataclass(frozen=True)
class SymbolMatch:
    symbol: str
    name: str
    type: str | None = None
    exchange: str | None = None


@dataclass(frozen=True)
class OHLCVData:
    """
    One price bar. Daily and weekly bars are stamped at midnight; hourly
    bars keep their time of day.
    """

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int | None = None

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close price must be positive, got {self.close}")
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) cannot be less than low ({self.low})")

    @property
    def date(self) -> date:
        return self.timestamp.date()


@dataclass
class HistoricalPricesResult:
    """Bars for one symbol, oldest first."""

    symbol: str
    interval: str
    prices: list[OHLCVData] = field(default_factory=list)
    from_date: date | None = None
    to_date: date | None = None

    @property
    def bars_fetched(self) -> int:
        return len(self.prices)

    def closes_by_date(self) -> dict[date, Decimal]:
        """Close per calendar day; with intraday bars the day's last close wins."""
        return {bar.date: bar.close for bar in self.prices}


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================

class MarketDataProvider(ABC):
    """
    Base class for quote sources.

    Subclasses wrap their raw calls in `_execute_with_retry`, which retries
    ProviderUnavailableError and RateLimitError with exponential backoff.
    TickerNotFoundError and anything else surface immediately. The knobs
    below are read per call, so tests can zero the waits on an instance.
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider id, e.g. "yahoo"."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """
        Raises:
            TickerNotFoundError, ProviderUnavailableError, RateLimitError
        """

    @abstractmethod
    def get_history(
            self,
            symbol: str,
            start_date: date,
            interval: str = "1d",
            end_date: date | None = None,
    ) -> HistoricalPricesResult:
        """
        Bars from start_date to end_date, both inclusive (end defaults to now).

        Raises:
            TickerNotFoundError, ProviderUnavailableError, RateLimitError
        """

    @abstractmethod
    def search(self, query: str) -> list[SymbolMatch]:
        """Symbol directory lookup; raises ProviderUnavailableError."""

    def is_available(self) -> bool:
        """Cheap reachability check for /health. Assumed up unless overridden."""
        return True

    def _execute_with_retry(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(func, *args, **kwargs)
