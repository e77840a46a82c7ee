# backend/app/services/importer/parsers/base.py
"""
Shared types and field helpers for the CSV format parsers.

Every parser is a plain function:

    parse_x(records: list[dict[str, str]]) -> ParseOutput

returning the normalized transactions plus per-row error strings. Parsers
only parse: they never touch the database and never raise for a bad row.
A row that is irrelevant (cash top-up, pending state, ...) is skipped
silently; a row that is relevant but malformed becomes "Row {n}: message".
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable

from app.models import TransactionType
from app.services.constants import SHARE_PRECISION


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class NormalizedTransaction:
    """
    A ledger entry produced by a parser, not yet bound to an account.

    Attributes:
        symbol: Market symbol, uppercase (e.g., "AAPL", "GC=F", "BTC-USD")
        type: Transaction type
        quantity: Units (for dividends: cash amount)
        price: Unit price in `currency` (0 when the export has none)
        fee: Fee in `currency`
        currency: ISO 4217 code
        date: Calendar day of the transaction
        notes: Provenance text
    """

    symbol: str
    type: TransactionType
    quantity: Decimal
    price: Decimal
    fee: Decimal
    currency: str
    date: date
    notes: str = ""


ParseOutput = tuple[list[NormalizedTransaction], list[str]]
Parser = Callable[[list[dict[str, str]]], ParseOutput]


class RowError(ValueError):
    """A relevant row that cannot be turned into a transaction."""


# =============================================================================
# FIELD HELPERS
# =============================================================================

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

# Numeric(18, 8) columns hold at most 10 integer digits
MAX_MAGNITUDE = Decimal("1e10")


def row_error(row_number: int, message: str) -> str:
    return f"Row {row_number}: {message}"


def to_decimal(value: str | None, field: str, default: str = "0") -> Decimal:
    """
    Parse a plain number; empty cells read as `default`.

    Raises:
        RowError: The cell is not a number, or too large for the ledger
    """
    raw = (value or "").strip()
    if not raw:
        return Decimal(default)
    try:
        number = Decimal(raw)
    except InvalidOperation:
        raise RowError(f"Invalid {field} '{raw}'")
    if not number.is_finite():
        raise RowError(f"Invalid {field} '{raw}'")
    if abs(number) >= MAX_MAGNITUDE:
        raise RowError(f"{field} '{raw}' is out of range")
    return number


def non_negative(value: Decimal, field: str) -> Decimal:
    if value < 0:
        raise RowError(f"{field} must be non-negative, got {value}")
    return value


def money_to_decimal(value: str | None, field: str) -> Decimal:
    """
    Parse an amount that may carry currency symbols or codes ("$1,250.50",
    "USD 12.30"). Anything but digits, dot and minus is dropped.
    """
    return to_decimal(_NON_NUMERIC.sub("", value or ""), field)


def quantize(value: Decimal, field: str = "value") -> Decimal:
    """
    Round to the ledger's storage precision (8 dp).

    Raises:
        RowError: The value does not fit a Numeric(18, 8) column
    """
    try:
        rounded = value.quantize(SHARE_PRECISION)
    except InvalidOperation:
        raise RowError(f"{field} {value} is out of range")
    if abs(rounded) >= MAX_MAGNITUDE:
        raise RowError(f"{field} {rounded} is out of range")
    return rounded


def parse_iso_day(value: str | None, field: str = "date") -> date:
    """
    Parse an ISO date or timestamp into a calendar day.

    Timestamps with an offset are moved to UTC first
    ("2024-03-01T23:30:00-02:00" is 2024-03-02).

    Raises:
        RowError: Empty or unparseable value
    """
    raw = (value or "").strip()
    if not raw:
        raise RowError(f"Missing {field}")
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise RowError(f"Invalid {field} '{raw}'")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def parse_us_day(value: str | None, field: str = "date") -> date:
    """
    Parse "M/D/YYYY" (optionally followed by a time) into a calendar day.

    Raises:
        RowError: Not three numeric parts or not a real calendar day
    """
    raw = (value or "").strip().split(" ")[0]
    parts = raw.split("/")
    if len(parts) != 3:
        raise RowError(f"Invalid {field} '{value}', expected M/D/YYYY")
    try:
        month, day, year = (int(part) for part in parts)
        return date(year, month, day)
    except ValueError:
        raise RowError(f"Invalid {field} '{value}', expected M/D/YYYY")


def lower_keys(record: dict[str, str]) -> dict[str, str]:
    """Header lookup is case-insensitive: re-key a record by lower-case header."""
    return {key.strip().lower(): (value or "").strip() for key, value in record.items() if key}
