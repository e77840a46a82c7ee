# backend/app/services/importer/parsers/revolut.py
"""
Parsers for Revolut exports.

Stocks (trading account statement):
    Date, Ticker, Type, Quantity, Price per share, Total Amount, Currency, FX Rate

    BUY - MARKET   -> buy
    SELL - MARKET  -> sell
    DIVIDEND       -> dividend, quantity = cash amount, price = 1
    STOCK SPLIT    -> transfer_in (free shares)
    CASH TOP-UP / CASH WITHDRAWAL and anything else -> skipped

Commodities (metals account statement):
    Type, Product, Started Date, Completed Date, Description, Amount, Fee, Currency, State, Balance

    Only COMPLETED rows. "Exchanged to EUR/USD" sells metal for fiat, any
    other "Exchanged to ..." buys metal. Metal codes map to futures symbols.
"""

import logging
from decimal import Decimal

from app.models import TransactionType
from app.services.importer.parsers.base import (
    NormalizedTransaction,
    ParseOutput,
    RowError,
    lower_keys,
    money_to_decimal,
    non_negative,
    parse_iso_day,
    quantize,
    row_error,
    to_decimal,
)

logger = logging.getLogger(__name__)

STOCK_TYPE_MAPPING: dict[str, TransactionType] = {
    "BUY - MARKET": TransactionType.BUY,
    "SELL - MARKET": TransactionType.SELL,
    "DIVIDEND": TransactionType.DIVIDEND,
    "STOCK SPLIT": TransactionType.TRANSFER_IN,
}

CASH_ROW_TYPES = frozenset({"CASH TOP-UP", "CASH WITHDRAWAL"})

COMMODITY_SYMBOLS: dict[str, str] = {
    "XAU": "GC=F",  # Gold
    "XAG": "SI=F",  # Silver
    "XPT": "PL=F",  # Platinum
    "XPD": "PA=F",  # Palladium
}

FIAT_EXCHANGE_DESCRIPTIONS = ("Exchanged to EUR", "Exchanged to USD")


def parse_revolut_stocks(records: list[dict[str, str]]) -> ParseOutput:
    transactions: list[NormalizedTransaction] = []
    errors: list[str] = []

    for index, record in enumerate(records, start=1):
        r = lower_keys(record)
        row_type = r.get("type", "")
        ticker = r.get("ticker", "")

        if not ticker or row_type in CASH_ROW_TYPES:
            continue

        txn_type = STOCK_TYPE_MAPPING.get(row_type)
        if txn_type is None:
            continue

        if not r.get("date"):
            continue

        try:
            quantity = abs(to_decimal(r.get("quantity"), "quantity"))
            price = money_to_decimal(r.get("price per share"), "price per share")
            total = abs(money_to_decimal(r.get("total amount"), "total amount"))
            day = parse_iso_day(r.get("date"))

            if txn_type == TransactionType.DIVIDEND:
                # Cash amount carried as quantity at unit price 1
                quantity, price = total, Decimal("1")
            elif txn_type == TransactionType.TRANSFER_IN and quantity == 0 and total == 0:
                price = Decimal("0")

            quantity = quantize(quantity, "quantity")
            price = quantize(non_negative(price, "price per share"), "price per share")
        except RowError as e:
            errors.append(row_error(index, str(e)))
            continue

        transactions.append(NormalizedTransaction(
            symbol=ticker.upper(),
            type=txn_type,
            quantity=quantity,
            price=price,
            fee=Decimal("0"),
            currency=(r.get("currency") or "USD").upper(),
            date=day,
            notes=f"Revolut: {row_type}",
        ))

    logger.debug(f"Revolut stocks: {len(transactions)} transactions from {len(records)} rows")
    return transactions, errors


def parse_revolut_commodities(records: list[dict[str, str]]) -> ParseOutput:
    transactions: list[NormalizedTransaction] = []
    errors: list[str] = []

    for index, record in enumerate(records, start=1):
        r = lower_keys(record)
        if r.get("state", "") != "COMPLETED":
            continue

        description = r.get("description", "")
        if any(marker in description for marker in FIAT_EXCHANGE_DESCRIPTIONS):
            txn_type = TransactionType.SELL
        elif description.startswith("Exchanged to"):
            txn_type = TransactionType.BUY
        else:
            continue

        # Timestamp "2024-01-15 10:30:00": keep the day
        day_text = (r.get("started date") or r.get("completed date") or "").split(" ")[0]
        if not day_text:
            continue

        code = (r.get("currency") or "XAU").upper()

        try:
            quantity = quantize(abs(to_decimal(r.get("amount"), "amount")), "amount")
            fee = quantize(abs(to_decimal(r.get("fee"), "fee")), "fee")
            day = parse_iso_day(day_text)
        except RowError as e:
            errors.append(row_error(index, str(e)))
            continue

        transactions.append(NormalizedTransaction(
            symbol=COMMODITY_SYMBOLS.get(code, code),
            type=txn_type,
            quantity=quantity,
            # Not in the export; valued at market price later
            price=Decimal("0"),
            fee=fee,
            currency="EUR",
            date=day,
            notes=f"Revolut Commodity: {description} ({code})",
        ))

    logger.debug(f"Revolut commodities: {len(transactions)} transactions from {len(records)} rows")
    return transactions, errors
