# backend/app/services/valuation/history_calculator.py
"""
History Calculator for reconstructed portfolio value time series.

This calculator replays the ledger against historical close prices:
1. Load all relevant transactions once, ordered by (date, id)
2. Fetch one close-price series per symbol (parallel, failure-isolated)
3. Walk the sorted union of price dates with a single forward pointer
   into the transactions (Rolling State pattern, O(D + T))

Approximations:
- A symbol whose history fetch failed is valued flat at its cached price;
  with nothing cached it is left out entirely
- A symbol contributes nothing on dates before its first observed price
- No FX conversion: each symbol is valued in its own price currency
"""

from __future__ import annotations

import bisect
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import ACQUIRING_TYPES, Transaction, TransactionType
from app.services.constants import CURRENCY_PRECISION, HOLDING_EPSILON
from app.services.market_data.price_oracle import PriceOracle
from app.services.valuation.holdings import HoldingsAggregator
from app.services.valuation.types import HistoryPoint
from app.utils.date_utils import resolve_history_period

logger = logging.getLogger(__name__)


class HistoryCalculator:
    """
    Calculates portfolio valuation history (time series).

    Key Insight:
        Holdings CHANGE over time as buys/sells occur. So we can't
        just fetch today's holdings and apply historical prices.
        Holdings are advanced date by date as the replay pointer moves.

    Attributes:
        _oracle: Source of close-price series and cached fallbacks
        _aggregator: Provides the signed quantity of each transaction
    """

    def __init__(
            self,
            price_oracle: PriceOracle,
            aggregator: HoldingsAggregator,
    ) -> None:
        self._oracle = price_oracle
        self._aggregator = aggregator

    def calculate(
            self,
            db: Session,
            period: str | None = None,
            account_id: int | None = None,
            today: date | None = None,
    ) -> list[HistoryPoint]:
        """
        Reconstruct the value series for a named period.

        Args:
            db: Database session
            period: "1w", "1m", "3m", "6m", "ytd", "1y", "5y" or "all"
            account_id: Restrict to one account (None = all accounts)
            today: Reference day for the period (defaults to today)

        Returns:
            One HistoryPoint per observed price date, ascending.
            Empty when there are no transactions or no prices.
        """
        start_date, interval = resolve_history_period(period, today)

        transactions = self._fetch_transactions(db, account_id)
        if not transactions:
            return []

        symbols = self._symbols_ever_held(transactions)
        if not symbols:
            return []

        series, fallbacks = self._fetch_series(db, symbols, start_date, interval)

        all_dates = sorted({d for closes in series.values() for d in closes})
        if not all_dates:
            logger.info(f"No price history since {start_date} for {len(symbols)} symbols")
            return []

        # Sorted date index per symbol for "at or before" lookups
        series_dates = {symbol: sorted(closes) for symbol, closes in series.items()}

        return self._calculate_history_rolling(
            transactions=transactions,
            target_dates=all_dates,
            series=series,
            series_dates=series_dates,
            fallbacks=fallbacks,
        )

    def _calculate_history_rolling(
            self,
            transactions: list[Transaction],
            target_dates: list[date],
            series: dict[str, dict[date, Decimal]],
            series_dates: dict[str, list[date]],
            fallbacks: dict[str, Decimal],
    ) -> list[HistoryPoint]:
        """
        Replay transactions against the target dates.

        Instead of filtering all transactions for each date (O(D*T)),
        we iterate through sorted dates and apply only NEW transactions
        since the last point (O(D+T)). A transaction is never applied to a
        date earlier than its own.
        """
        data_points: list[HistoryPoint] = []

        running: dict[str, Decimal] = {}  # symbol -> quantity
        cumulative_cost = Decimal("0")

        txn_index = 0
        num_txns = len(transactions)

        for target_date in target_dates:
            # === PHASE 1: Apply all transactions up to and including target_date ===
            while txn_index < num_txns and transactions[txn_index].date <= target_date:
                txn = transactions[txn_index]
                running[txn.symbol] = running.get(txn.symbol, Decimal("0")) + self._aggregator.quantity_delta(txn)

                if TransactionType(txn.type) in ACQUIRING_TYPES:
                    cumulative_cost += Decimal(txn.quantity or 0) * Decimal(txn.price or 0)

                txn_index += 1

            # === PHASE 2: Value the running holdings at this date ===
            total_value = Decimal("0")
            for symbol, quantity in running.items():
                if quantity <= HOLDING_EPSILON:
                    continue

                price = self._lookup_price(symbol, target_date, series, series_dates, fallbacks)
                if price is None:
                    continue
                total_value += quantity * price

            data_points.append(HistoryPoint(
                date=target_date,
                value=self._round(total_value),
                cost=self._round(cumulative_cost),
                gain=self._round(total_value - cumulative_cost),
            ))

        return data_points

    # =========================================================================
    # DATA FETCHING
    # =========================================================================

    def _fetch_transactions(self, db: Session, account_id: int | None) -> list[Transaction]:
        query = select(Transaction).order_by(Transaction.date, Transaction.id)
        if account_id is not None:
            query = query.where(Transaction.account_id == account_id)
        return list(db.scalars(query))

    def _symbols_ever_held(self, transactions: list[Transaction]) -> list[str]:
        """Symbols whose running balance exceeds epsilon at some point."""
        balances: dict[str, Decimal] = {}
        held: set[str] = set()

        for txn in transactions:
            balance = balances.get(txn.symbol, Decimal("0")) + self._aggregator.quantity_delta(txn)
            balances[txn.symbol] = balance
            if balance > HOLDING_EPSILON:
                held.add(txn.symbol)

        return sorted(held)

    def _fetch_series(
            self,
            db: Session,
            symbols: list[str],
            start_date: date,
            interval: str,
    ) -> tuple[dict[str, dict[date, Decimal]], dict[str, Decimal]]:
        """
        Fetch close series; failed symbols fall back to a flat cached price.

        Returns:
            (series per symbol, flat fallback price per failed symbol)
        """
        outcomes = self._oracle.close_series(symbols, start_date, interval)

        series: dict[str, dict[date, Decimal]] = {}
        fallbacks: dict[str, Decimal] = {}

        for symbol in symbols:
            outcome = outcomes.get(symbol)
            if isinstance(outcome, dict):
                series[symbol] = outcome
                continue

            cached = self._oracle.cached_quote(db, symbol)
            if cached is not None:
                logger.warning(f"History unavailable for {symbol} ({outcome}); using flat cached price {cached.price}")
                fallbacks[symbol] = cached.price
            else:
                logger.warning(f"History unavailable for {symbol} ({outcome}); excluded from reconstruction")

        return series, fallbacks

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @staticmethod
    def _lookup_price(
            symbol: str,
            target_date: date,
            series: dict[str, dict[date, Decimal]],
            series_dates: dict[str, list[date]],
            fallbacks: dict[str, Decimal],
    ) -> Decimal | None:
        """
        Close at target_date, else the most recent earlier close.

        Never looks forward. Symbols without a usable close fall back to
        their flat cached price, if any.
        """
        dates = series_dates.get(symbol)
        if dates:
            position = bisect.bisect_right(dates, target_date)
            if position > 0:
                return series[symbol][dates[position - 1]]

        return fallbacks.get(symbol)

    @staticmethod
    def _round(value: Decimal) -> Decimal:
        return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)
