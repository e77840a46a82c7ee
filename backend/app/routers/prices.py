# backend/app/routers/prices.py
"""
Price and valuation endpoints.

Quotes and market data:
- GET  /prices/quote/{symbol}          - Single quote (cache first)
- POST /prices/quotes                  - Batch quotes, never fails per symbol
- GET  /prices/history/{symbol}        - OHLCV bars for a named period
- GET  /prices/search/{query}          - Symbol search

Valuation:
- GET  /prices/dashboard/summary       - Current totals in base currency
- GET  /prices/portfolio/history       - Reconstructed value series
- GET  /prices/daily-wealth            - Stored snapshots in a date range
- POST /prices/daily-wealth            - Snapshot today from cached prices
"""

import datetime as dt
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import (
    get_current_user,
    get_daily_wealth_service,
    get_price_oracle,
    get_valuation_service,
)
from app.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_MARKET_DATA,
    RATE_LIMIT_WRITE,
)
from app.models import User
from app.schemas.prices import (
    AccountSummaryResponse,
    DailyWealthResponse,
    DailyWealthSnapshotResponse,
    DashboardSummaryResponse,
    HistoryPointResponse,
    PriceBarResponse,
    QuoteBatchRequest,
    QuoteErrorResponse,
    QuoteResponse,
    SymbolMatchResponse,
)
from app.schemas.validators import validate_symbol
from app.services.exceptions import MarketDataError
from app.services.market_data import PriceOracle, QuoteError
from app.services.valuation import DailyWealthService, DashboardSummary, ValuationService

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/prices",
    tags=["Prices"],
)


def _normalize_symbol(symbol: str) -> str:
    try:
        return validate_symbol(symbol)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_summary(summary: DashboardSummary) -> DashboardSummaryResponse:
    return DashboardSummaryResponse(
        total_wealth=summary.total_wealth,
        total_cost=summary.total_cost,
        total_gain=summary.total_gain,
        total_gain_percent=summary.total_gain_percent,
        base_currency=summary.base_currency,
        holdings_count=summary.holdings_count,
        accounts=[AccountSummaryResponse.model_validate(a) for a in summary.accounts],
        missing_rates=summary.missing_rates,
        stale_symbols=summary.stale_symbols,
        unpriced_symbols=summary.unpriced_symbols,
    )


# =============================================================================
# QUOTE ENDPOINTS
# =============================================================================

@router.get(
    "/quote/{symbol}",
    response_model=QuoteResponse,
    summary="Get a quote",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_quote(
        request: Request,
        symbol: str,
        db: Session = Depends(get_db),
        oracle: PriceOracle = Depends(get_price_oracle),
        current_user: User = Depends(get_current_user),
) -> QuoteResponse:
    """
    Get the current price of one symbol.

    A cache entry younger than five minutes is returned without a fetch.
    If the fetch fails, the last cached price is returned with
    `stale: true`. Raises **404** when there is no price at all.
    """
    result = oracle.quote(db, _normalize_symbol(symbol))
    return QuoteResponse.model_validate(result)


@router.post(
    "/quotes",
    response_model=dict[str, QuoteResponse | QuoteErrorResponse],
    summary="Get quotes for many symbols",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_quotes(
        request: Request,
        body: QuoteBatchRequest,
        db: Session = Depends(get_db),
        oracle: PriceOracle = Depends(get_price_oracle),
        current_user: User = Depends(get_current_user),
) -> dict[str, QuoteResponse | QuoteErrorResponse]:
    """
    Quote a batch of symbols.

    One symbol's failure never fails the batch: a symbol with no price at
    all comes back as `{symbol, price: 0, error}`.
    """
    results = oracle.quotes(db, body.symbols)
    return {
        symbol: (
            QuoteErrorResponse.model_validate(result)
            if isinstance(result, QuoteError)
            else QuoteResponse.model_validate(result)
        )
        for symbol, result in results.items()
    }


@router.get(
    "/history/{symbol}",
    response_model=list[PriceBarResponse],
    summary="Get price history",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_price_history(
        request: Request,
        symbol: str,
        period: str = Query(
            default="1y",
            pattern=r"^(1w|1m|3m|6m|1y|5y|max)$",
            description="1w, 1m, 3m, 6m, 1y, 5y or max",
        ),
        oracle: PriceOracle = Depends(get_price_oracle),
        current_user: User = Depends(get_current_user),
) -> list[PriceBarResponse]:
    """
    OHLCV bars for one symbol. Interval scales with the period (hourly
    for 1w, daily for 1m, weekly beyond).

    Raises **404** when the provider cannot supply the series.
    """
    normalized = _normalize_symbol(symbol)
    try:
        bars = oracle.history(normalized, period)
    except MarketDataError as e:
        logger.warning(f"History unavailable for {normalized}: {e}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No price history available for {normalized}",
        )

    return [
        PriceBarResponse(
            date=bar.timestamp,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=bar.volume,
        )
        for bar in bars
    ]


@router.get(
    "/search/{query}",
    response_model=list[SymbolMatchResponse],
    summary="Search symbols",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def search_symbols(
        request: Request,
        query: str,
        oracle: PriceOracle = Depends(get_price_oracle),
        current_user: User = Depends(get_current_user),
) -> list[SymbolMatchResponse]:
    query = query.strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Query cannot be empty")
    return [SymbolMatchResponse.model_validate(match) for match in oracle.search(query)]


# =============================================================================
# VALUATION ENDPOINTS
# =============================================================================

@router.get(
    "/dashboard/summary",
    response_model=DashboardSummaryResponse,
    summary="Get dashboard summary",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_dashboard_summary(
        request: Request,
        db: Session = Depends(get_db),
        service: ValuationService = Depends(get_valuation_service),
        current_user: User = Depends(get_current_user),
) -> DashboardSummaryResponse:
    """
    Current market value and cost basis of every holding, converted to the
    base currency.

    Missing exchange rates convert at 1 and are listed in `missing_rates`.
    """
    return _map_summary(service.get_summary(db))


@router.get(
    "/portfolio/history",
    response_model=list[HistoryPointResponse],
    summary="Get reconstructed portfolio history",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_portfolio_history(
        request: Request,
        account_id: int | None = Query(default=None, gt=0),
        period: str = Query(
            default="3m",
            pattern=r"^(1w|1m|3m|6m|ytd|1y|5y|all)$",
            description="1w, 1m, 3m, 6m, ytd, 1y, 5y or all",
        ),
        db: Session = Depends(get_db),
        service: ValuationService = Depends(get_valuation_service),
        current_user: User = Depends(get_current_user),
) -> list[HistoryPointResponse]:
    """
    Replay the ledger against historical closes.

    Values are in each symbol's price currency (no FX conversion). Raises
    **404** for an unknown account.
    """
    points = service.get_history(db, period=period, account_id=account_id)
    return [
        HistoryPointResponse(date=p.date, value=p.value, cost=p.cost, gain=p.gain)
        for p in points
    ]


@router.get(
    "/daily-wealth",
    response_model=list[DailyWealthResponse],
    summary="List daily wealth snapshots",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_daily_wealth(
        request: Request,
        start: dt.date = Query(..., description="First day (inclusive)"),
        end: dt.date = Query(..., description="Last day (inclusive)"),
        db: Session = Depends(get_db),
        service: DailyWealthService = Depends(get_daily_wealth_service),
        current_user: User = Depends(get_current_user),
) -> list[DailyWealthResponse]:
    return [DailyWealthResponse.model_validate(row) for row in service.list_range(db, start, end)]


@router.post(
    "/daily-wealth",
    response_model=DailyWealthSnapshotResponse,
    summary="Snapshot today's wealth",
)
@limiter.limit(RATE_LIMIT_WRITE)
def create_daily_wealth(
        request: Request,
        db: Session = Depends(get_db),
        service: DailyWealthService = Depends(get_daily_wealth_service),
        current_user: User = Depends(get_current_user),
) -> DailyWealthSnapshotResponse:
    """
    Value the portfolio from cached prices only and store today's row,
    replacing any earlier snapshot of the same day.
    """
    row = service.snapshot(db)
    return DailyWealthSnapshotResponse.model_validate(row)
