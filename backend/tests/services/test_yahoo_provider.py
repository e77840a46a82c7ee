# backend/tests/services/test_yahoo_provider.py
"""
Tests for the YahooFinanceProvider.

This module tests:
- Quote extraction from Ticker.info
- Historical bars from a yfinance DataFrame
- Symbol search
- Error classification and retry behavior

Note: These tests mock the yfinance library to avoid actual API calls.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from app.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from app.services.market_data.yahoo import YahooFinanceProvider


@pytest.fixture
def provider() -> YahooFinanceProvider:
    """Provider with a single attempt and no backoff."""
    provider = YahooFinanceProvider(timeout=5)
    provider.MAX_RETRY_ATTEMPTS = 1
    provider.RETRY_MIN_WAIT = 0
    provider.RETRY_MAX_WAIT = 0
    return provider


@pytest.fixture
def mock_yf():
    with patch("app.services.market_data.yahoo.yf") as yf:
        yield yf


# =============================================================================
# PROVIDER INITIALIZATION
# =============================================================================

class TestYahooProviderInit:
    """Tests for provider initialization."""

    def test_provider_name(self):
        assert YahooFinanceProvider().name == "yahoo"

    def test_default_timeout(self):
        assert YahooFinanceProvider()._timeout == 10

    def test_custom_timeout(self):
        assert YahooFinanceProvider(timeout=30)._timeout == 30


# =============================================================================
# QUOTES
# =============================================================================

class TestGetQuote:
    """Tests for get_quote."""

    def test_quote_from_info(self, provider, mock_yf):
        mock_yf.Ticker.return_value.info = {
            "regularMarketPrice": 195.12,
            "currency": "usd",
            "shortName": "Apple Inc.",
            "regularMarketChangePercent": 1.5,
        }

        quote = provider.get_quote("aapl")

        mock_yf.Ticker.assert_called_once_with("AAPL")
        assert quote.symbol == "AAPL"
        assert quote.price == Decimal("195.12")
        assert quote.currency == "USD"
        assert quote.name == "Apple Inc."
        assert quote.change_percent == Decimal("1.5")

    def test_falls_back_to_previous_close(self, provider, mock_yf):
        mock_yf.Ticker.return_value.info = {"previousClose": 100.0, "currency": "EUR"}

        quote = provider.get_quote("SAP.DE")

        assert quote.price == Decimal("100")
        assert quote.name == "SAP.DE"

    def test_missing_currency_defaults_to_usd(self, provider, mock_yf):
        mock_yf.Ticker.return_value.info = {"currentPrice": 10}

        assert provider.get_quote("X").currency == "USD"

    def test_info_without_price_is_not_found(self, provider, mock_yf):
        mock_yf.Ticker.return_value.info = {"quoteType": "NONE"}

        with pytest.raises(TickerNotFoundError):
            provider.get_quote("NOPE")

    def test_nan_price_is_ignored(self, provider, mock_yf):
        mock_yf.Ticker.return_value.info = {"regularMarketPrice": float("nan")}

        with pytest.raises(TickerNotFoundError):
            provider.get_quote("NOPE")


# =============================================================================
# HISTORY
# =============================================================================

class TestGetHistory:
    """Tests for get_history."""

    def test_converts_dataframe(self, provider, mock_yf):
        index = pd.DatetimeIndex(["2024-03-01", "2024-03-04"], tz="America/New_York")
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame(
            {
                "Open": [100.0, 101.0],
                "High": [102.0, 103.0],
                "Low": [99.0, 100.0],
                "Close": [101.0, 102.5],
                "Volume": [1000, 2000],
            },
            index=index,
        )

        result = provider.get_history("AAPL", date(2024, 3, 1), "1d")

        assert result.bars_fetched == 2
        assert result.prices[0].timestamp == datetime(2024, 3, 1)
        assert result.closes_by_date() == {
            date(2024, 3, 1): Decimal("101"),
            date(2024, 3, 4): Decimal("102.5"),
        }
        kwargs = mock_yf.Ticker.return_value.history.call_args.kwargs
        assert kwargs["start"] == "2024-03-01"
        assert kwargs["interval"] == "1d"
        assert "end" not in kwargs
        assert kwargs["timeout"] == 5

    def test_end_date_is_made_inclusive(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame(
            {"Close": [10.0]}, index=pd.DatetimeIndex(["2024-03-01"])
        )

        provider.get_history("AAPL", date(2024, 3, 1), "1d", end_date=date(2024, 3, 5))

        assert mock_yf.Ticker.return_value.history.call_args.kwargs["end"] == "2024-03-06"

    def test_rows_without_close_are_dropped(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame(
            {"Open": [1.0, 2.0], "Close": [float("nan"), 2.0]},
            index=pd.DatetimeIndex(["2024-03-01", "2024-03-02"]),
        )

        result = provider.get_history("AAPL", date(2024, 3, 1))

        assert [bar.date for bar in result.prices] == [date(2024, 3, 2)]

    def test_empty_frame_for_unknown_ticker(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame()
        mock_yf.Ticker.return_value.info = {}

        with pytest.raises(TickerNotFoundError):
            provider.get_history("NOPE", date(2024, 3, 1))

    def test_empty_frame_for_known_ticker(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame()
        mock_yf.Ticker.return_value.info = {"regularMarketPrice": 10}

        result = provider.get_history("AAPL", date(2024, 3, 1))

        assert result.prices == []


# =============================================================================
# SEARCH
# =============================================================================

class TestSearch:
    """Tests for search."""

    def test_maps_quotes(self, provider, mock_yf):
        mock_yf.Search.return_value.quotes = [
            {"symbol": "AAPL", "shortname": "Apple Inc.", "quoteType": "EQUITY", "exchDisp": "NASDAQ"},
            {"shortname": "no symbol"},
            {"symbol": "APC.DE", "longname": "Apple Inc. (Xetra)", "exchange": "GER"},
        ]

        matches = provider.search("apple")

        assert [m.symbol for m in matches] == ["AAPL", "APC.DE"]
        assert matches[0].exchange == "NASDAQ"
        assert matches[1].name == "Apple Inc. (Xetra)"
        assert matches[1].exchange == "GER"

    def test_blank_query(self, provider, mock_yf):
        assert provider.search("  ") == []
        mock_yf.Search.assert_not_called()

    def test_passes_timeout(self, provider, mock_yf):
        mock_yf.Search.return_value.quotes = []

        provider.search("apple")

        assert mock_yf.Search.call_args.kwargs["timeout"] == 5


# =============================================================================
# AVAILABILITY
# =============================================================================

class TestAvailability:
    """Tests for the /health availability check."""

    def test_available_when_spy_returns_bars(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame(
            {"Close": [500.0]}, index=pd.DatetimeIndex(["2024-03-01"])
        )

        assert provider.is_available() is True
        mock_yf.Ticker.assert_called_once_with("SPY")

    def test_unavailable_on_error(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.side_effect = Exception("Connection reset")

        assert provider.is_available() is False

    def test_unavailable_on_empty_frame(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame()

        assert provider.is_available() is False

    def test_result_is_cached(self, provider, mock_yf):
        mock_yf.Ticker.return_value.history.side_effect = Exception("Connection reset")

        assert provider.is_available() is False
        assert provider.is_available() is False
        assert mock_yf.Ticker.call_count == 1


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestErrorClassification:
    """Tests for mapping raw errors to domain exceptions."""

    @pytest.mark.parametrize("message,expected", [
        ("No data found, symbol may be delisted", TickerNotFoundError),
        ("404 Not Found", TickerNotFoundError),
        ("Too Many Requests. Rate limited.", RateLimitError),
        ("Connection reset by peer", ProviderUnavailableError),
    ])
    def test_classify(self, provider, message, expected):
        assert isinstance(provider._classify_error(Exception(message), "AAPL"), expected)

    def test_quote_error_is_classified(self, provider, mock_yf):
        mock_yf.Ticker.side_effect = Exception("Connection reset")

        with pytest.raises(ProviderUnavailableError):
            provider.get_quote("AAPL")

    def test_retries_transient_errors(self, mock_yf):
        provider = YahooFinanceProvider()
        provider.MAX_RETRY_ATTEMPTS = 3
        provider.RETRY_MIN_WAIT = 0
        provider.RETRY_MAX_WAIT = 0
        provider.RETRY_MULTIPLIER = 0

        good = MagicMock()
        good.info = {"regularMarketPrice": 10}
        mock_yf.Ticker.side_effect = [Exception("Connection reset"), good]

        assert provider.get_quote("AAPL").price == Decimal("10")
        assert mock_yf.Ticker.call_count == 2

    def test_not_found_is_not_retried(self, mock_yf):
        provider = YahooFinanceProvider()
        provider.MAX_RETRY_ATTEMPTS = 3
        provider.RETRY_MIN_WAIT = 0
        provider.RETRY_MAX_WAIT = 0
        mock_yf.Ticker.return_value.info = {}

        with pytest.raises(TickerNotFoundError):
            provider.get_quote("NOPE")

        assert mock_yf.Ticker.call_count == 1
