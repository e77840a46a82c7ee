# backend/tests/services/test_history_calculator.py
"""
Tests for HistoryCalculator (portfolio value reconstruction).

This module tests:
- Rolling replay of the ledger against close series
- The monotonic pointer: a transaction never affects an earlier date
- "At or before" price lookup across symbols with different calendars
- Fallback to a flat cached price when a series cannot be fetched
- Period resolution (daily vs weekly points)
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.models import TransactionType
from app.services.exceptions import ProviderUnavailableError
from app.services.valuation import HistoryCalculator, HoldingsAggregator
from app.utils.date_utils import resolve_history_period
from tests.conftest import cache_price, create_account, create_transaction

TODAY = date(2024, 3, 31)


@pytest.fixture
def calculator(price_oracle) -> HistoryCalculator:
    return HistoryCalculator(price_oracle=price_oracle, aggregator=HoldingsAggregator())


@pytest.fixture
def account(db):
    return create_account(db, currency="USD")


def as_rows(points) -> list[tuple[date, Decimal, Decimal]]:
    return [(p.date, p.value, p.cost) for p in points]


# =============================================================================
# REPLAY
# =============================================================================

class TestRollingReplay:
    """Tests for the date-by-date replay."""

    def test_reconstructs_value_and_cost(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "MSFT", quantity="5", price="200", day=date(2024, 2, 1))
        create_transaction(db, account, "AAPL", quantity="10", price="100", day=date(2024, 3, 5))
        create_transaction(db, account, "AAPL", TransactionType.SELL, "4", "130", day=date(2024, 3, 10))

        mock_provider.add_history("AAPL", {
            date(2024, 3, 4): "100",
            date(2024, 3, 5): "110",
            date(2024, 3, 8): "120",
            date(2024, 3, 10): "130",
        })
        mock_provider.add_history("MSFT", {
            date(2024, 3, 4): "300",
            date(2024, 3, 10): "310",
        })

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert as_rows(points) == [
            (date(2024, 3, 4), Decimal("1500.00"), Decimal("1000.00")),
            (date(2024, 3, 5), Decimal("2600.00"), Decimal("2000.00")),
            (date(2024, 3, 8), Decimal("2700.00"), Decimal("2000.00")),
            (date(2024, 3, 10), Decimal("2330.00"), Decimal("2000.00")),
        ]
        assert points[-1].gain == Decimal("330.00")

    def test_gain_is_rounded_from_unrounded_totals(self, db, mock_provider, calculator, account):
        """Value 1.005 and cost 0.004 round to 1.01 and 0.00, but the gain of 1.001 rounds to 1.00."""
        create_transaction(db, account, "AAPL", quantity="0.001", price="4", day=date(2024, 3, 4))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "1005"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert as_rows(points) == [(date(2024, 3, 4), Decimal("1.01"), Decimal("0.00"))]
        assert points[0].gain == Decimal("1.00")

    def test_transaction_between_price_dates_applies_to_next_date(
            self, db, mock_provider, calculator, account
    ):
        """A buy on the 6th shows up on the 8th, never on the 5th."""
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 6))
        mock_provider.add_history("AAPL", {
            date(2024, 3, 5): "100",
            date(2024, 3, 8): "105",
        })

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert as_rows(points) == [
            (date(2024, 3, 5), Decimal("0.00"), Decimal("0.00")),
            (date(2024, 3, 8), Decimal("105.00"), Decimal("100.00")),
        ]

    def test_dividends_do_not_change_quantity(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="2", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "AAPL", TransactionType.DIVIDEND, "3.5", "1", day=date(2024, 3, 2))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert points[0].value == Decimal("200.00")
        assert points[0].cost == Decimal("200.00")

    def test_symbol_missing_a_date_uses_previous_close(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "BTC-USD", TransactionType.TRANSFER_IN, "1", "40000", day=date(2024, 3, 1))
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 1))
        # Crypto trades on weekends, stocks do not
        mock_provider.add_history("BTC-USD", {
            date(2024, 3, 8): "60000",
            date(2024, 3, 9): "61000",
        })
        mock_provider.add_history("AAPL", {date(2024, 3, 8): "170"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert points[-1].date == date(2024, 3, 9)
        assert points[-1].value == Decimal("61170.00")

    def test_no_value_before_first_observed_price(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "NEW", quantity="1", price="10", day=date(2024, 3, 1))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100", date(2024, 3, 5): "100"})
        mock_provider.add_history("NEW", {date(2024, 3, 5): "10"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert [p.value for p in points] == [Decimal("100.00"), Decimal("110.00")]


# =============================================================================
# SYMBOL SELECTION AND FALLBACKS
# =============================================================================

class TestSeriesFetching:
    """Tests for which series are fetched and how failures degrade."""

    def test_only_symbols_ever_held_are_fetched(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "CASH", TransactionType.INTEREST, "5", "1", day=date(2024, 3, 1))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100"})

        calculator.calculate(db, period="1m", today=TODAY)

        assert mock_provider.history_call_count == 1

    def test_sold_symbol_still_fetched_for_past_dates(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "AAPL", TransactionType.SELL, "1", "110", day=date(2024, 3, 6))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "105", date(2024, 3, 7): "110"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert [p.value for p in points] == [Decimal("105.00"), Decimal("0.00")]

    def test_failed_series_falls_back_to_cached_price(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="2", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "GC=F", quantity="1", price="0", day=date(2024, 3, 1))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100", date(2024, 3, 5): "101"})
        mock_provider.add_history_error("GC=F", ProviderUnavailableError("mock", "down"))
        cache_price(db, "GC=F", "2000", age=timedelta(days=3))

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert [p.value for p in points] == [Decimal("2200.00"), Decimal("2202.00")]

    def test_failed_series_without_cache_is_excluded(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "AAPL", quantity="2", price="100", day=date(2024, 3, 1))
        create_transaction(db, account, "NOPE", quantity="1", price="50", day=date(2024, 3, 1))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100"})

        points = calculator.calculate(db, period="1m", today=TODAY)

        assert points[0].value == Decimal("200.00")
        assert points[0].cost == Decimal("250.00")

    def test_no_prices_at_all_is_empty(self, db, mock_provider, calculator, account):
        create_transaction(db, account, "NOPE", quantity="1", price="50", day=date(2024, 3, 1))

        assert calculator.calculate(db, period="1m", today=TODAY) == []

    def test_account_filter(self, db, mock_provider, calculator, account):
        other = create_account(db, "Other")
        create_transaction(db, account, "AAPL", quantity="1", price="100", day=date(2024, 3, 1))
        create_transaction(db, other, "MSFT", quantity="1", price="300", day=date(2024, 3, 1))
        mock_provider.add_history("AAPL", {date(2024, 3, 4): "100"})
        mock_provider.add_history("MSFT", {date(2024, 3, 4): "300"})

        points = calculator.calculate(db, period="1m", account_id=other.id, today=TODAY)

        assert points[0].value == Decimal("300.00")


# =============================================================================
# PERIODS
# =============================================================================

class TestResolveHistoryPeriod:
    """Tests for period → (start, interval)."""

    @pytest.mark.parametrize("period,start,interval", [
        ("1w", date(2024, 3, 24), "1d"),
        ("1m", date(2024, 3, 1), "1d"),
        ("3m", date(2024, 1, 1), "1wk"),
        ("1y", date(2023, 4, 1), "1wk"),
        ("ytd", date(2024, 1, 1), "1wk"),
        (None, date(2024, 1, 1), "1wk"),
        ("bogus", date(2024, 1, 1), "1wk"),
    ])
    def test_periods(self, period, start, interval):
        assert resolve_history_period(period, TODAY) == (start, interval)

    def test_ytd_early_in_year_is_daily(self):
        assert resolve_history_period("ytd", date(2024, 1, 20)) == (date(2024, 1, 1), "1d")
