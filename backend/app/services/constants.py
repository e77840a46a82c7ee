# backend/app/services/constants.py
"""
Tunables shared by the services, with their units.

Rate-limit strings use the slowapi/limits syntax ("100/minute").
"""

from datetime import date
from decimal import Decimal


# =============================================================================
# HOLDINGS
# =============================================================================

# A position is "active" only above this quantity
# Tolerates rounding residue from repeated fractional trades (1e-8 = 1 satoshi)
HOLDING_EPSILON: Decimal = Decimal("0.00000001")


# =============================================================================
# PRICE CACHE SETTINGS
# =============================================================================

# Freshness window for cached quotes in seconds
# 5 minutes: older entries are "stale" and only served as a fallback
PRICE_CACHE_TTL_SECONDS: int = 300

# Currency assumed when a provider quote carries none
DEFAULT_QUOTE_CURRENCY: str = "USD"


# =============================================================================
# PRICE HISTORY PERIODS (single-symbol chart)
# =============================================================================

# Named chart period -> (days back, yfinance interval)
# Finer interval for short ranges keeps payloads bounded
CHART_PERIODS: dict[str, tuple[int, str]] = {
    "1w": (7, "1h"),
    "1m": (30, "1d"),
    "3m": (90, "1wk"),
    "6m": (180, "1wk"),
    "1y": (365, "1wk"),
    "5y": (1825, "1wk"),
}

# "max" starts at a fixed date rather than a day count
CHART_MAX_START: date = date(2000, 1, 1)
CHART_MAX_INTERVAL: str = "1wk"

DEFAULT_CHART_PERIOD: str = "1y"


# =============================================================================
# PORTFOLIO RECONSTRUCTION PERIODS
# =============================================================================

# Named period -> days back ("ytd" is resolved to Jan 1 of the current year)
HISTORY_PERIOD_DAYS: dict[str, int] = {
    "1w": 7,
    "1m": 30,
    "3m": 90,
    "6m": 180,
    "1y": 365,
    "5y": 1825,
    "all": 3650,
}

DEFAULT_HISTORY_PERIOD: str = "3m"

# Spans up to this many days use daily points, longer spans weekly points
DAILY_INTERVAL_MAX_DAYS: int = 30


# =============================================================================
# EXTERNAL API TIMEOUT / CONCURRENCY SETTINGS
# =============================================================================

# Deadline for a single provider call when fanned out to the worker pool
# Prevents one slow symbol from stalling the dashboard
EXTERNAL_API_TIMEOUT_SECONDS: int = 10

# Worker pool size for parallel provider fetches
# Small on purpose: bounds provider rate-limit exposure
MARKET_DATA_MAX_WORKERS: int = 4

# Maximum search results requested from the provider
SEARCH_MAX_RESULTS: int = 10


# =============================================================================
# DECIMAL PRECISION CONSTANTS
# =============================================================================

# Money amounts in API responses
CURRENCY_PRECISION: Decimal = Decimal("0.01")

# Quantities, unit prices and FX rates
SHARE_PRECISION: Decimal = Decimal("0.00000001")


# =============================================================================
# RATE LIMITS (per client key)
# =============================================================================

# Plain reads
RATE_LIMIT_DEFAULT: str = "100/minute"

# Rate table writes, daily wealth snapshots
RATE_LIMIT_WRITE: str = "30/minute"

# Endpoints that hit the market data provider (quotes, history, search)
# Restrictive since they call Yahoo Finance
RATE_LIMIT_MARKET_DATA: str = "60/minute"

# CSV import and format detection
RATE_LIMIT_UPLOAD: str = "5/minute"

# Orchestrator health checks poll often
RATE_LIMIT_HEALTH: str = "300/minute"


# =============================================================================
# RESOURCE LIMIT CONSTANTS
# =============================================================================

# Uploads above this are rejected before parsing (10 MB)
MAX_UPLOAD_FILE_SIZE_BYTES: int = 10 * 1024 * 1024

# Maximum number of symbols in a single batch quote request
MAX_BATCH_SIZE: int = 200
