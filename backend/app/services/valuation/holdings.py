# backend/app/services/valuation/holdings.py
"""
Holdings aggregation: replay the ledger into current positions.

Rules:
- Acquiring (buy, transfer_in) adds quantity and acquisition notional
- Disposing (sell, transfer_out) removes quantity only; average cost of
  the remaining position is unchanged (single blended number, no lots)
- Cash events (dividend, interest, fee) touch neither quantity nor cost
- A position is active only while quantity > HOLDING_EPSILON

Usage:
    aggregator = HoldingsAggregator()
    holdings = aggregator.load(db)                 # all accounts
    holdings = aggregator.load(db, account_id=3)   # one account

    # Rolling replay (history reconstruction)
    state: dict = {}
    for txn in ordered_transactions:
        aggregator.apply_transaction(state, txn)
    current = aggregator.state_to_holdings(state)
"""

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import ACQUIRING_TYPES, DISPOSING_TYPES, Transaction, TransactionType
from app.services.constants import HOLDING_EPSILON
from app.services.valuation.types import Holding

logger = logging.getLogger(__name__)

# (account_id, symbol) -> running aggregates
HoldingsState = dict[tuple[int, str], dict[str, Decimal]]


class HoldingsAggregator:
    """
    Aggregates ledger transactions into per-(account, symbol) holdings.

    Stateless; every method receives what it needs.
    """

    def aggregate(self, transactions: Iterable[Transaction]) -> list[Holding]:
        """
        Aggregate transactions in a single pass.

        Args:
            transactions: Ledger rows, any accounts, any order

        Returns:
            Active holdings sorted by (account_id, symbol)
        """
        state: HoldingsState = {}
        for txn in transactions:
            self.apply_transaction(state, txn)
        return self.state_to_holdings(state)

    def load(self, db: Session, account_id: int | None = None) -> list[Holding]:
        """Load the ledger (optionally one account) and aggregate it."""
        query = select(Transaction).order_by(Transaction.date, Transaction.id)
        if account_id is not None:
            query = query.where(Transaction.account_id == account_id)
        return self.aggregate(db.scalars(query))

    def apply_transaction(self, state: HoldingsState, transaction: Transaction) -> None:
        """
        Apply a single transaction to holdings state (mutates state).

        Used by the rolling state pattern in history reconstruction so the
        ledger is replayed once, not once per date.

        Note:
            state[(account_id, symbol)] contains:
            {
                'quantity': Decimal,
                'acquired_quantity': Decimal,
                'acquired_cost': Decimal,
            }
        """
        txn_type = TransactionType(transaction.type)
        if txn_type not in ACQUIRING_TYPES and txn_type not in DISPOSING_TYPES:
            return

        key = (transaction.account_id, transaction.symbol)
        if key not in state:
            state[key] = {
                'quantity': Decimal("0"),
                'acquired_quantity': Decimal("0"),
                'acquired_cost': Decimal("0"),
            }

        entry = state[key]
        quantity = Decimal(transaction.quantity or 0)

        if txn_type in ACQUIRING_TYPES:
            entry['quantity'] += quantity
            entry['acquired_quantity'] += quantity
            entry['acquired_cost'] += quantity * Decimal(transaction.price or 0)
        else:
            entry['quantity'] -= quantity

    def state_to_holdings(self, state: HoldingsState) -> list[Holding]:
        """
        Convert holdings state to Holding objects.

        Only returns positions with quantity > HOLDING_EPSILON; an oversold
        position (negative quantity) is dropped with a warning.
        """
        holdings: list[Holding] = []

        for (account_id, symbol), entry in sorted(state.items()):
            quantity = entry['quantity']
            if quantity < -HOLDING_EPSILON:
                logger.warning(
                    f"Negative quantity {quantity} for {symbol} in account {account_id}; "
                    f"more units disposed than acquired"
                )
            if quantity <= HOLDING_EPSILON:
                continue

            holdings.append(Holding(
                symbol=symbol,
                account_id=account_id,
                quantity=quantity,
                acquired_quantity=entry['acquired_quantity'],
                acquired_cost=entry['acquired_cost'],
            ))

        return holdings

    @staticmethod
    def quantity_delta(transaction: Transaction) -> Decimal:
        """Signed quantity change a transaction applies to its holding."""
        txn_type = TransactionType(transaction.type)
        quantity = Decimal(transaction.quantity or 0)
        if txn_type in ACQUIRING_TYPES:
            return quantity
        if txn_type in DISPOSING_TYPES:
            return -quantity
        return Decimal("0")
