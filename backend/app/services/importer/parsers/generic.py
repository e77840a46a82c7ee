# backend/app/services/importer/parsers/generic.py
"""
Parser for the generic column layout (also what the exporter writes):

    symbol, type, quantity, price, fee, currency, date, notes

Header names are case-insensitive. Type defaults to "buy" and currency to
EUR. Rows without a symbol or date, or with a type outside the ledger
vocabulary, are skipped.
"""

from app.models import TransactionType
from app.services.importer.parsers.base import (
    NormalizedTransaction,
    ParseOutput,
    RowError,
    lower_keys,
    non_negative,
    parse_iso_day,
    quantize,
    row_error,
    to_decimal,
)

VALID_TYPES = {t.value: t for t in TransactionType}


def parse_generic(records: list[dict[str, str]]) -> ParseOutput:
    transactions: list[NormalizedTransaction] = []
    errors: list[str] = []

    for index, record in enumerate(records, start=1):
        r = lower_keys(record)
        symbol = r.get("symbol", "").upper()
        txn_type = VALID_TYPES.get((r.get("type") or "buy").lower())

        if not symbol or not r.get("date") or txn_type is None:
            continue

        # Direction comes from the type column, so amounts are never signed
        try:
            quantity = quantize(non_negative(to_decimal(r.get("quantity"), "quantity"), "quantity"), "quantity")
            price = quantize(non_negative(to_decimal(r.get("price"), "price"), "price"), "price")
            fee = quantize(non_negative(to_decimal(r.get("fee"), "fee"), "fee"), "fee")
            day = parse_iso_day(r.get("date"))
        except RowError as e:
            errors.append(row_error(index, str(e)))
            continue

        transactions.append(NormalizedTransaction(
            symbol=symbol,
            type=txn_type,
            quantity=quantity,
            price=price,
            fee=fee,
            currency=(r.get("currency") or "EUR").upper(),
            date=day,
            notes=r.get("notes", ""),
        ))

    return transactions, errors
