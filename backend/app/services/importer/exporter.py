# backend/app/services/importer/exporter.py
"""
CSV export of the ledger.

The column set is a superset of the generic import layout, so an exported
file can be re-imported (as "generic") into another account.
"""

import csv
import io
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Account, Transaction
from app.services.exceptions import AccountNotFoundError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id", "account_name", "symbol", "type", "quantity",
    "price", "fee", "currency", "date", "notes",
]


def export_csv(db: Session, account_id: int | None = None) -> str:
    """
    Render transactions as CSV, newest first.

    Args:
        db: Database session
        account_id: Restrict to one account (all accounts when None)

    Raises:
        AccountNotFoundError: account_id given but unknown
    """
    if account_id is not None and db.get(Account, account_id) is None:
        raise AccountNotFoundError(account_id)

    stmt = (
        select(Transaction, Account.name)
        .join(Account, Transaction.account_id == Account.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    if account_id is not None:
        stmt = stmt.where(Transaction.account_id == account_id)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)

    count = 0
    for txn, account_name in db.execute(stmt).all():
        writer.writerow([
            txn.id,
            account_name,
            txn.symbol,
            txn.type.value,
            txn.quantity,
            txn.price,
            txn.fee,
            txn.currency,
            txn.date.isoformat(),
            txn.notes or "",
        ])
        count += 1

    logger.debug(f"Exported {count} transactions (account={account_id})")
    return buffer.getvalue()
