# backend/app/services/valuation/types.py
"""
Internal data types for the Valuation Service.

These dataclasses are used internally by the valuation code.
They are NOT Pydantic schemas - those are defined in app/schemas/prices.py
for API serialization.

Design Principles:
- Immutable where possible (frozen=True for value objects)
- Use Decimal for ALL financial values (never float)
- Use date (not datetime) for valuation dates

Type Hierarchy:
    Holding           - Current position in one (account, symbol)
    AccountSummary    - Per-account totals in base currency
    DashboardSummary  - Portfolio-wide totals in base currency
    HistoryPoint      - Single point in reconstructed time series
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


# =============================================================================
# POSITION & HOLDINGS
# =============================================================================

@dataclass(frozen=True)
class Holding:
    """
    Aggregated position for one symbol in one account.

    Attributes:
        symbol: Market symbol
        account_id: Owning account
        quantity: Units currently held (acquired - disposed)
        acquired_quantity: Units ever acquired (buy + transfer_in)
        acquired_cost: Σ quantity × price over acquisitions, in the
                       transactions' own currency (fees excluded)

    Note:
        avg_cost keeps the full acquisition history: selling part of a
        position does not change the average cost of what remains.
    """

    symbol: str
    account_id: int
    quantity: Decimal
    acquired_quantity: Decimal
    acquired_cost: Decimal

    @property
    def avg_cost(self) -> Decimal | None:
        """Weighted average acquisition price; None if nothing was acquired."""
        if self.acquired_quantity == Decimal("0"):
            return None
        return self.acquired_cost / self.acquired_quantity


# =============================================================================
# DASHBOARD
# =============================================================================

@dataclass
class AccountSummary:
    """Per-account totals in base currency."""

    account_id: int
    account_name: str
    market_value: Decimal = Decimal("0")
    cost_basis: Decimal = Decimal("0")
    holdings_count: int = 0


@dataclass
class DashboardSummary:
    """
    Complete current valuation across all accounts.

    Attributes:
        total_wealth: Σ market value in base currency
        total_cost: Σ cost basis in base currency
        total_gain: total_wealth - total_cost
        total_gain_percent: total_gain / total_cost × 100 (0 when no cost)
        base_currency: Currency every total is expressed in
        holdings_count: Number of active (account, symbol) positions
        accounts: Per-account breakdown, ordered by account id
        missing_rates: "FROM→TO" pairs that were converted at rate 1
        stale_symbols: Symbols valued from an expired cache entry
        unpriced_symbols: Symbols valued at 0 (no price at all)
    """

    total_wealth: Decimal
    total_cost: Decimal
    base_currency: str
    holdings_count: int
    accounts: list[AccountSummary] = field(default_factory=list)
    missing_rates: list[str] = field(default_factory=list)
    stale_symbols: list[str] = field(default_factory=list)
    unpriced_symbols: list[str] = field(default_factory=list)

    @property
    def total_gain(self) -> Decimal:
        return self.total_wealth - self.total_cost

    @property
    def total_gain_percent(self) -> Decimal:
        if self.total_cost == Decimal("0"):
            return Decimal("0")
        return self.total_gain / self.total_cost * Decimal("100")


# =============================================================================
# HISTORY (Time series for charts)
# =============================================================================

@dataclass(frozen=True)
class HistoryPoint:
    """
    A single point in the reconstructed portfolio history.

    Values are rounded to 2 decimals and expressed in the price currency of
    each symbol (no FX conversion is applied to reconstructed history).
    Gain is rounded from the unrounded value and cost, so it can differ
    from value - cost by a cent.
    """

    date: date
    value: Decimal
    cost: Decimal
    gain: Decimal
