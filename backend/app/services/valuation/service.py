# backend/app/services/valuation/service.py
"""
Valuation Service - Main orchestrator for portfolio valuation.

This is the single entry point for all valuation operations:
- get_summary(): Instantaneous dashboard totals in base currency
- get_history(): Reconstructed value time series for charts

Design Principles:
- Dependency Injection: PriceOracle, CurrencyConverter and
  HoldingsAggregator are injected via constructor
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Degrades instead of failing: missing prices count as 0, missing FX rates
  convert at 1, and both are reported on the result

Usage:
    from app.services.valuation import ValuationService

    service = ValuationService(price_oracle, CurrencyConverter(), HoldingsAggregator())

    summary = service.get_summary(db)
    history = service.get_history(db, period="3m", account_id=None)
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Account, User
from app.services.constants import DEFAULT_QUOTE_CURRENCY
from app.services.currency_converter import CurrencyConverter
from app.services.exceptions import AccountNotFoundError
from app.services.market_data.price_oracle import PriceOracle, QuoteError, QuoteResult
from app.services.valuation.history_calculator import HistoryCalculator
from app.services.valuation.holdings import HoldingsAggregator
from app.services.valuation.types import (
    AccountSummary,
    DashboardSummary,
    HistoryPoint,
)

logger = logging.getLogger(__name__)


def resolve_base_currency(db: Session) -> str:
    """Base currency of the (single) user, else the configured default."""
    currency = db.scalar(select(User.base_currency).order_by(User.id).limit(1))
    return (currency or settings.default_base_currency).upper()


class ValuationService:
    """
    Main service for portfolio valuation operations.

    Attributes:
        _oracle: Price source (cache + provider)
        _converter: Directed-rate currency converter
        _aggregator: Ledger → holdings replay
        _history_calc: Calculator for time series
    """

    def __init__(
            self,
            price_oracle: PriceOracle,
            converter: CurrencyConverter | None = None,
            aggregator: HoldingsAggregator | None = None,
    ) -> None:
        self._oracle = price_oracle
        self._converter = converter or CurrencyConverter()
        self._aggregator = aggregator or HoldingsAggregator()
        self._history_calc = HistoryCalculator(
            price_oracle=self._oracle,
            aggregator=self._aggregator,
        )
        logger.info("ValuationService initialized")

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def get_summary(self, db: Session, cached_only: bool = False) -> DashboardSummary:
        """
        Value every active holding in base currency.

        Args:
            db: Database session
            cached_only: Use cached prices only (no provider calls), as the
                         daily snapshot does

        Returns:
            DashboardSummary with global and per-account totals
        """
        holdings = self._aggregator.load(db)
        base_currency = resolve_base_currency(db)
        rates = self._converter.load_rates(db)

        symbols = sorted({h.symbol for h in holdings})
        prices = self._resolve_prices(db, symbols, cached_only)

        account_ids = {h.account_id for h in holdings}
        accounts = {
            account.id: account
            for account in db.scalars(select(Account).where(Account.id.in_(account_ids)))
        } if account_ids else {}

        per_account: dict[int, AccountSummary] = {}
        total_wealth = Decimal("0")
        total_cost = Decimal("0")
        stale: set[str] = set()
        unpriced: set[str] = set()

        for holding in holdings:
            account = accounts.get(holding.account_id)
            account_currency = account.currency if account else base_currency

            # === Market value: price currency → base ===
            quote = prices.get(holding.symbol)
            if isinstance(quote, QuoteResult):
                price, price_currency = quote.price, quote.currency
                if quote.stale:
                    stale.add(holding.symbol)
            else:
                price, price_currency = Decimal("0"), DEFAULT_QUOTE_CURRENCY
                unpriced.add(holding.symbol)

            market_value = rates.convert(
                holding.quantity * price, price_currency, base_currency
            ).amount

            # === Cost basis: account currency → base ===
            avg_cost = holding.avg_cost or Decimal("0")
            cost_basis = rates.convert(
                holding.quantity * avg_cost, account_currency, base_currency
            ).amount

            summary = per_account.get(holding.account_id)
            if summary is None:
                summary = AccountSummary(
                    account_id=holding.account_id,
                    account_name=account.name if account else f"Account {holding.account_id}",
                )
                per_account[holding.account_id] = summary

            summary.market_value += market_value
            summary.cost_basis += cost_basis
            summary.holdings_count += 1

            total_wealth += market_value
            total_cost += cost_basis

        if rates.missing:
            logger.warning(f"Valuation used default rate 1 for: {', '.join(sorted(rates.missing))}")

        return DashboardSummary(
            total_wealth=total_wealth,
            total_cost=total_cost,
            base_currency=base_currency,
            holdings_count=len(holdings),
            accounts=[per_account[key] for key in sorted(per_account)],
            missing_rates=sorted(rates.missing),
            stale_symbols=sorted(stale),
            unpriced_symbols=sorted(unpriced),
        )

    def get_history(
            self,
            db: Session,
            period: str | None = None,
            account_id: int | None = None,
    ) -> list[HistoryPoint]:
        """
        Reconstruct the portfolio value series for a named period.

        Raises:
            AccountNotFoundError: account_id given but unknown
        """
        if account_id is not None and db.get(Account, account_id) is None:
            raise AccountNotFoundError(account_id)

        return self._history_calc.calculate(db, period=period, account_id=account_id)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _resolve_prices(
            self,
            db: Session,
            symbols: list[str],
            cached_only: bool,
    ) -> dict[str, QuoteResult | QuoteError]:
        if not cached_only:
            return self._oracle.quotes(db, symbols)

        prices: dict[str, QuoteResult | QuoteError] = {}
        for symbol in symbols:
            cached = self._oracle.cached_quote(db, symbol)
            prices[symbol] = cached if cached is not None else QuoteError(
                symbol=symbol, error="No cached price"
            )
        return prices
