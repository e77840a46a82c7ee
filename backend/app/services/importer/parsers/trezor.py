# backend/app/services/importer/parsers/trezor.py
"""
Parser for Trezor Suite transaction exports.

    Date, Time, Type, Transaction ID, Fee, Fee unit, Address, Label,
    Amount, Amount unit, Fiat (USD), Other

RECV becomes transfer_in and SENT transfer_out. The unit price is derived
from the fiat value at transaction time (Fiat (USD) / Amount), so the
ledger keeps a USD cost for received coins.
"""

import logging

from app.models import TransactionType
from app.services.importer.parsers.base import (
    NormalizedTransaction,
    ParseOutput,
    RowError,
    lower_keys,
    money_to_decimal,
    parse_us_day,
    quantize,
    row_error,
    to_decimal,
)

logger = logging.getLogger(__name__)

TYPE_MAPPING: dict[str, TransactionType] = {
    "RECV": TransactionType.TRANSFER_IN,
    "SENT": TransactionType.TRANSFER_OUT,
}

UNIT_SYMBOLS: dict[str, str] = {
    "BTC": "BTC-USD",
    "ETH": "ETH-USD",
    "LTC": "LTC-USD",
}

TXID_NOTE_LENGTH = 16


def _symbol_for_unit(unit: str) -> str:
    return UNIT_SYMBOLS.get(unit, f"{unit}-USD")


def parse_trezor(records: list[dict[str, str]]) -> ParseOutput:
    transactions: list[NormalizedTransaction] = []
    errors: list[str] = []

    for index, record in enumerate(records, start=1):
        r = lower_keys(record)
        txn_type = TYPE_MAPPING.get(r.get("type", "").upper())
        if txn_type is None:
            continue
        if not r.get("date"):
            continue

        unit = (r.get("amount unit") or "BTC").upper()

        try:
            amount = abs(to_decimal(r.get("amount"), "amount"))
            fiat_usd = abs(money_to_decimal(r.get("fiat (usd)"), "fiat (usd)"))
            fee = abs(money_to_decimal(r.get("fee"), "fee"))
            day = parse_us_day(r.get("date"))
            if amount == 0:
                continue
            price = quantize(fiat_usd / amount, "price")
            amount = quantize(amount, "amount")
            fee = quantize(fee, "fee")
        except RowError as e:
            errors.append(row_error(index, str(e)))
            continue

        tx_id = r.get("transaction id", "")
        notes = f"TxID: {tx_id[:TXID_NOTE_LENGTH]}..." if tx_id else f"Trezor {unit}"

        transactions.append(NormalizedTransaction(
            symbol=_symbol_for_unit(unit),
            type=txn_type,
            quantity=amount,
            price=price,
            fee=fee,
            currency="USD",
            date=day,
            notes=notes,
        ))

    logger.debug(f"Trezor: {len(transactions)} transactions from {len(records)} rows")
    return transactions, errors
