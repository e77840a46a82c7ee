# backend/app/utils/date_utils.py
"""
Date helpers shared by the price oracle and portfolio reconstruction.

Centralizing period resolution keeps the chart endpoint and the history
reconstruction consistent about what "3m" or "ytd" means.

Usage:
    from app.utils.date_utils import resolve_chart_period

    start, interval = resolve_chart_period("1m")
"""

from datetime import date, timedelta

from app.services.constants import (
    CHART_MAX_INTERVAL,
    CHART_MAX_START,
    CHART_PERIODS,
    DAILY_INTERVAL_MAX_DAYS,
    DEFAULT_CHART_PERIOD,
    DEFAULT_HISTORY_PERIOD,
    HISTORY_PERIOD_DAYS,
)


def days_ago(days: int, today: date | None = None) -> date:
    """Return the calendar day `days` before today."""
    return (today or date.today()) - timedelta(days=days)


def resolve_chart_period(period: str | None, today: date | None = None) -> tuple[date, str]:
    """
    Map a named chart period to a (start_date, interval) pair.

    Unknown or missing periods fall back to one year.

    Example:
        >>> resolve_chart_period("1w", date(2024, 3, 8))
        (datetime.date(2024, 3, 1), '1h')
    """
    if period == "max":
        return CHART_MAX_START, CHART_MAX_INTERVAL

    days, interval = CHART_PERIODS.get(period or "", CHART_PERIODS[DEFAULT_CHART_PERIOD])
    return days_ago(days, today), interval


def resolve_history_period(period: str | None, today: date | None = None) -> tuple[date, str]:
    """
    Map a reconstruction period to a (start_date, interval) pair.

    "ytd" starts exactly on January 1st; every other period counts days back
    from today. Spans of 30 days or fewer use daily points, longer spans
    weekly points. Unknown periods fall back to three months.
    """
    today = today or date.today()

    if period == "ytd":
        start = date(today.year, 1, 1)
        days = (today - start).days
    else:
        days = HISTORY_PERIOD_DAYS.get(period or "", HISTORY_PERIOD_DAYS[DEFAULT_HISTORY_PERIOD])
        start = days_ago(days, today)

    interval = "1d" if days <= DAILY_INTERVAL_MAX_DAYS else "1wk"
    return start, interval
