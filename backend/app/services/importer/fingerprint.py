# backend/app/services/importer/fingerprint.py
"""
Deduplication key for ledger rows.

    account_id | symbol | type | quantity (8dp) | price (4dp) | YYYY-MM-DD

Fee and notes are deliberately left out: two rows that differ only in fee
or notes count as the same transaction.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Transaction, TransactionType


def transaction_fingerprint(
        account_id: int,
        symbol: str,
        txn_type: TransactionType | str,
        quantity: Decimal,
        price: Decimal,
        day: date | datetime | str,
) -> str:
    type_value = txn_type.value if isinstance(txn_type, TransactionType) else str(txn_type)

    if isinstance(day, datetime):
        day_part = day.date().isoformat()
    elif isinstance(day, date):
        day_part = day.isoformat()
    else:
        day_part = str(day).split("T")[0].split(" ")[0]

    return (
        f"{account_id}|{symbol}|{type_value}|"
        f"{Decimal(quantity or 0):.8f}|{Decimal(price or 0):.4f}|{day_part}"
    )


def load_fingerprints(db: Session, account_id: int) -> set[str]:
    """Fingerprints of every ledger row already stored for the account."""
    rows = db.execute(
        select(
            Transaction.account_id,
            Transaction.symbol,
            Transaction.type,
            Transaction.quantity,
            Transaction.price,
            Transaction.date,
        ).where(Transaction.account_id == account_id)
    ).all()
    return {transaction_fingerprint(*row) for row in rows}
