# backend/app/services/valuation/snapshot.py
"""
Daily wealth snapshots.

One row per calendar day, written from the dashboard computation using
cached prices only (a snapshot never triggers provider calls). Writing
twice on the same day overwrites the row; earlier days are left alone.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import DailyWealth
from app.services.constants import CURRENCY_PRECISION
from app.services.exceptions import ValidationError
from app.services.valuation.service import ValuationService

logger = logging.getLogger(__name__)


def _money(value: Decimal) -> Decimal:
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


class DailyWealthService:
    """Persists and reads DailyWealth rows."""

    def __init__(self, valuation_service: ValuationService) -> None:
        self._valuation = valuation_service

    def snapshot(self, db: Session, today: date | None = None) -> DailyWealth:
        """
        Value the portfolio from cached prices and upsert today's row.

        Returns:
            The stored DailyWealth row
        """
        today = today or date.today()
        summary = self._valuation.get_summary(db, cached_only=True)

        details = {
            "accounts": [
                {
                    "account_id": account.account_id,
                    "name": account.account_name,
                    "market_value": float(_money(account.market_value)),
                    "cost_basis": float(_money(account.cost_basis)),
                }
                for account in summary.accounts
            ],
            "holdings_count": summary.holdings_count,
        }

        row = db.get(DailyWealth, today)
        if row is None:
            row = DailyWealth(date=today)
            db.add(row)

        row.total_wealth = _money(summary.total_wealth)
        row.total_cost = _money(summary.total_cost)
        row.base_currency = summary.base_currency
        row.details = details
        row.updated_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(row)

        logger.info(
            f"Daily wealth snapshot {today}: {row.total_wealth} {row.base_currency} "
            f"({summary.holdings_count} holdings)"
        )
        return row

    def list_range(self, db: Session, start: date, end: date) -> list[DailyWealth]:
        """
        Snapshots between start and end (inclusive), oldest first.

        Raises:
            ValidationError: start is after end
        """
        if start > end:
            raise ValidationError(f"start ({start}) must not be after end ({end})", field="start")

        return list(db.scalars(
            select(DailyWealth)
            .where(DailyWealth.date >= start, DailyWealth.date <= end)
            .order_by(DailyWealth.date)
        ))
