# backend/app/services/currency_converter.py
"""
Currency conversion over user-maintained exchange rates.

=============================================================================
RATE CONVENTION
=============================================================================

Each CurrencyRate row is a DIRECTED edge:

    rate = "1 from_currency = X to_currency"

Example:
    from_currency = "USD"
    to_currency = "EUR"
    rate = 0.92

    Meaning: 1 USD = 0.92 EUR
    Conversion: EUR_amount = USD_amount × rate

No inverse is derived (EUR→USD needs its own row) and no multi-hop path is
searched. A missing pair converts at rate 1 and is reported as
`rate_found=False` so callers can surface the gap instead of failing.

=============================================================================

Usage:
    from app.services.currency_converter import CurrencyConverter

    converter = CurrencyConverter()
    result = converter.convert(db, Decimal("100"), "USD", "EUR")
    if not result.rate_found:
        ...

    # Many conversions during one valuation: snapshot the table once
    table = converter.load_rates(db)
    eur = table.convert(Decimal("100"), "USD", "EUR").amount
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import CurrencyRate
from app.services.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ONE = Decimal("1")


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ConversionResult:
    """Converted amount plus the rate applied."""

    amount: Decimal
    rate: Decimal
    rate_found: bool = True


@dataclass
class RateTable:
    """
    In-memory snapshot of all directed rates.

    Records every pair that had to default to 1 in `missing`, as
    "FROM→TO" strings.
    """

    rates: dict[tuple[str, str], Decimal] = field(default_factory=dict)
    missing: set[str] = field(default_factory=set)

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> ConversionResult:
        source = _normalize(from_currency)
        target = _normalize(to_currency)

        if source == target:
            return ConversionResult(amount=amount, rate=ONE)

        rate = self.rates.get((source, target))
        if rate is None:
            pair = f"{source}→{target}"
            if pair not in self.missing:
                logger.warning(f"No exchange rate {pair}; converting at 1")
                self.missing.add(pair)
            return ConversionResult(amount=amount, rate=ONE, rate_found=False)

        return ConversionResult(amount=amount * rate, rate=rate)


def _normalize(code: str | None) -> str:
    return (code or "").strip().upper()


# =============================================================================
# CONVERTER
# =============================================================================

class CurrencyConverter:
    """Stateless converter; every call reads the current rate table."""

    def convert(
            self,
            db: Session,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> ConversionResult:
        """
        Convert `amount` from one currency to another.

        Same-currency conversions never touch the database.
        """
        source = _normalize(from_currency)
        target = _normalize(to_currency)

        if source == target:
            return ConversionResult(amount=amount, rate=ONE)

        rate = db.scalar(
            select(CurrencyRate.rate).where(
                CurrencyRate.from_currency == source,
                CurrencyRate.to_currency == target,
            )
        )

        if rate is None:
            logger.warning(f"No exchange rate {source}→{target}; converting at 1")
            return ConversionResult(amount=amount, rate=ONE, rate_found=False)

        rate = Decimal(rate)
        return ConversionResult(amount=amount * rate, rate=rate)

    def load_rates(self, db: Session) -> RateTable:
        """Snapshot every stored rate for repeated conversions."""
        rows = db.execute(
            select(CurrencyRate.from_currency, CurrencyRate.to_currency, CurrencyRate.rate)
        ).all()
        return RateTable(rates={
            (_normalize(src), _normalize(dst)): Decimal(rate)
            for src, dst, rate in rows
        })


# =============================================================================
# RATE MAINTENANCE
# =============================================================================

class CurrencyRateService:
    """
    CRUD for the currency_rates table.

    Rates are entered by the user; there is no automatic FX sync.
    """

    def list_rates(self, db: Session) -> list[CurrencyRate]:
        return list(db.scalars(
            select(CurrencyRate).order_by(CurrencyRate.from_currency, CurrencyRate.to_currency)
        ))

    def upsert_rate(
            self,
            db: Session,
            from_currency: str,
            to_currency: str,
            rate: Decimal,
    ) -> CurrencyRate:
        """
        Create the pair, or replace its rate if it already exists.

        Raises:
            ValidationError: Non-positive rate or malformed currency codes
        """
        source = _normalize(from_currency)
        target = _normalize(to_currency)
        self._validate(source, target, rate)

        record = db.scalar(
            select(CurrencyRate).where(
                CurrencyRate.from_currency == source,
                CurrencyRate.to_currency == target,
            )
        )
        if record is None:
            record = CurrencyRate(from_currency=source, to_currency=target, rate=rate)
            db.add(record)
        else:
            record.rate = rate
            record.updated_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(record)
        logger.info(f"Exchange rate {source}→{target} set to {rate}")
        return record

    def update_rate(self, db: Session, rate_id: int, rate: Decimal) -> CurrencyRate:
        """
        Change the rate of an existing pair.

        Raises:
            NotFoundError: Unknown rate id
            ValidationError: Non-positive rate
        """
        record = self._get_or_raise(db, rate_id)
        if rate <= 0:
            raise ValidationError("Exchange rate must be positive", field="rate")

        record.rate = rate
        record.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(record)
        return record

    def delete_rate(self, db: Session, rate_id: int) -> None:
        record = self._get_or_raise(db, rate_id)
        db.delete(record)
        db.commit()
        logger.info(f"Exchange rate {record.from_currency}→{record.to_currency} deleted")

    @staticmethod
    def _get_or_raise(db: Session, rate_id: int) -> CurrencyRate:
        record = db.get(CurrencyRate, rate_id)
        if record is None:
            raise NotFoundError(
                f"Exchange rate {rate_id} not found",
                resource_type="CurrencyRate",
                resource_id=rate_id,
            )
        return record

    @staticmethod
    def _validate(source: str, target: str, rate: Decimal) -> None:
        if len(source) != 3 or not source.isalpha():
            raise ValidationError(f"Invalid currency code: '{source}'", field="from_currency")
        if len(target) != 3 or not target.isalpha():
            raise ValidationError(f"Invalid currency code: '{target}'", field="to_currency")
        if rate <= 0:
            raise ValidationError("Exchange rate must be positive", field="rate")
