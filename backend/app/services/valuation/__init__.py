# backend/app/services/valuation/__init__.py
"""
Valuation Service Package.

This package provides portfolio valuation capabilities:
- Current holdings from the ledger (HoldingsAggregator)
- Instantaneous dashboard totals (ValuationService.get_summary)
- Reconstructed time series for charts (ValuationService.get_history)
- Persisted daily snapshots (DailyWealthService)

Usage:
    from app.services.valuation import ValuationService, DailyWealthService

    service = ValuationService(price_oracle)
    summary = service.get_summary(db)
    history = service.get_history(db, period="1y")

    DailyWealthService(service).snapshot(db)

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Internal data classes
    ├── holdings.py              # Ledger replay → holdings
    ├── history_calculator.py    # Time series reconstruction
    ├── service.py               # ValuationService (orchestrator)
    └── snapshot.py              # DailyWealthService

Data Flow:
    Transactions → HoldingsAggregator → Holdings
    Holdings + PriceOracle + CurrencyConverter → DashboardSummary
    DashboardSummary → DailyWealth row
    Transactions + close series → HistoryPoint list
"""

from app.services.valuation.history_calculator import HistoryCalculator
from app.services.valuation.holdings import HoldingsAggregator
from app.services.valuation.service import ValuationService, resolve_base_currency
from app.services.valuation.snapshot import DailyWealthService
from app.services.valuation.types import (
    Holding,
    AccountSummary,
    DashboardSummary,
    HistoryPoint,
)

__all__ = [
    # Services
    "ValuationService",
    "DailyWealthService",
    "resolve_base_currency",

    # Data types
    "Holding",
    "AccountSummary",
    "DashboardSummary",
    "HistoryPoint",

    # Calculators (for testing)
    "HoldingsAggregator",
    "HistoryCalculator",
]
