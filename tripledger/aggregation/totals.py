"""
Project totals.

Totals are recomputed from the full transaction set on every change.
Sets are small (one trip), so there is no incremental bookkeeping to
drift out of sync.
"""

from decimal import Decimal
from typing import Iterable

from tripledger.models import BalanceState, Totals, Transaction, TransactionType


def compute_totals(transactions: Iterable[Transaction]) -> Totals:
    income = Decimal("0")
    expense = Decimal("0")
    for transaction in transactions:
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        else:
            expense += transaction.amount
    return Totals(income=income, expense=expense, balance=income - expense)


def balance_state(balance: Decimal) -> BalanceState:
    """Positive, negative or neutral, for display."""
    if balance > 0:
        return BalanceState.POSITIVE
    if balance < 0:
        return BalanceState.NEGATIVE
    return BalanceState.NEUTRAL
