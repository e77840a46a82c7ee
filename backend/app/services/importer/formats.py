# backend/app/services/importer/formats.py
"""
CSV format detection and raw record reading.

Supported exports:
    revolut-stocks       Ticker, Type, Quantity, Price per share, Total Amount, ...
    revolut-commodities  Product, Started Date, Completed Date, Description, Amount, State, ...
    trezor               Date, Type, Transaction ID, Amount, Amount unit, Fiat (USD), ...
    generic              symbol, type, quantity, price, fee, currency, date, notes

Detection looks at the header row only (case-insensitive, trimmed). Rules
are checked in a fixed order and the first match wins, so a header row that
fits several signatures always resolves the same way.
"""

import csv
import io
import logging
from enum import Enum

from app.services.exceptions import ImportFormatError

logger = logging.getLogger(__name__)


class CSVFormat(str, Enum):
    REVOLUT_STOCKS = "revolut-stocks"
    REVOLUT_COMMODITIES = "revolut-commodities"
    TREZOR = "trezor"
    GENERIC = "generic"
    UNKNOWN = "unknown"


# (required lower-case headers, format), in priority order
DETECTION_RULES: list[tuple[frozenset[str], CSVFormat]] = [
    (frozenset({"ticker", "price per share"}), CSVFormat.REVOLUT_STOCKS),
    (frozenset({"product", "started date", "state"}), CSVFormat.REVOLUT_COMMODITIES),
    (frozenset({"transaction id", "amount unit"}), CSVFormat.TREZOR),
    (frozenset({"symbol", "type"}), CSVFormat.GENERIC),
]

# Tried in order; latin-1 never fails
ENCODINGS = ("utf-8-sig", "utf-8", "latin-1")


def detect_format(headers: list[str]) -> CSVFormat:
    """
    Identify the export format from a header row.

    Example:
        >>> detect_format(["Date", "Ticker", "Type", "Price per share"])
        <CSVFormat.REVOLUT_STOCKS: 'revolut-stocks'>
    """
    normalized = {h.strip().lower() for h in headers if h}
    for required, csv_format in DETECTION_RULES:
        if required <= normalized:
            return csv_format
    return CSVFormat.UNKNOWN


def decode_content(content: bytes | str) -> str:
    """Decode uploaded bytes, falling back through common encodings."""
    if isinstance(content, str):
        return content.lstrip("\ufeff")

    for encoding in ENCODINGS:
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError:
            continue
        if encoding == "latin-1":
            logger.warning("CSV is not UTF-8, falling back to Latin-1 encoding")
        return text

    # Unreachable: latin-1 maps every byte
    raise ImportFormatError("Could not decode CSV file")


def read_csv_records(content: bytes | str) -> tuple[list[str], list[dict[str, str]]]:
    """
    Parse CSV content into (headers, records).

    Keys and values are trimmed, fully empty rows are skipped and ragged
    rows are tolerated: missing cells read as "", surplus cells are dropped.

    Raises:
        ImportFormatError: The content is not readable as CSV
    """
    text = decode_content(content)
    if not text.strip():
        return [], []

    try:
        reader = csv.reader(io.StringIO(text))
        raw_headers = next(reader, None)
        if raw_headers is None:
            return [], []

        headers = [h.strip() for h in raw_headers]
        records: list[dict[str, str]] = []
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            record = {
                header: (row[index].strip() if index < len(row) else "")
                for index, header in enumerate(headers)
                if header
            }
            records.append(record)
    except csv.Error as e:
        raise ImportFormatError(f"Could not parse CSV: {e}") from e

    return [h for h in headers if h], records
