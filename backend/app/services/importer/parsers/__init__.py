# backend/app/services/importer/parsers/__init__.py
"""
Format parsers, keyed by detected CSV format.

Usage:
    from app.services.importer.parsers import PARSERS

    transactions, errors = PARSERS[CSVFormat.TREZOR](records)
"""

from app.services.importer.formats import CSVFormat
from app.services.importer.parsers.base import (
    NormalizedTransaction,
    ParseOutput,
    Parser,
    RowError,
)
from app.services.importer.parsers.generic import parse_generic
from app.services.importer.parsers.revolut import (
    parse_revolut_commodities,
    parse_revolut_stocks,
)
from app.services.importer.parsers.trezor import parse_trezor

PARSERS: dict[CSVFormat, Parser] = {
    CSVFormat.REVOLUT_STOCKS: parse_revolut_stocks,
    CSVFormat.REVOLUT_COMMODITIES: parse_revolut_commodities,
    CSVFormat.TREZOR: parse_trezor,
    CSVFormat.GENERIC: parse_generic,
}

__all__ = [
    "PARSERS",
    "NormalizedTransaction",
    "ParseOutput",
    "Parser",
    "RowError",
    "parse_generic",
    "parse_revolut_stocks",
    "parse_revolut_commodities",
    "parse_trezor",
]
