"""
Budget Module - allocation ledger for client budgets

A budget's allocation is derived from the client's commissions and an
investment percentage; service orders consume it through apply_delta, the
single path that moves executed_amount.
"""

from broker_ledger.budget.ledger_math import (
    compute_order_total,
    derive_allocated_amount,
    remaining_balance,
)
from broker_ledger.budget.models import Budget, BudgetStatus

__all__ = [
    "Budget",
    "BudgetStatus",
    "compute_order_total",
    "derive_allocated_amount",
    "remaining_balance",
]
