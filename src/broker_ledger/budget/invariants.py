"""
Budget Module Invariants - the rules a budget mutation must satisfy

apply_delta is the single choke point for executed_amount. Order handlers
compute a contribution delta and pass it here; nothing else may move the
running balance.

These are pure functions: they raise a typed DomainError or return a value.
"""

from decimal import Decimal

from broker_ledger.budget.ledger_math import to_money
from broker_ledger.budget.models import Budget
from broker_ledger.kernel.errors import (
    AllocationBelowExecuted,
    BudgetExceeded,
    BudgetNotFound,
    NegativeBalance,
)
from broker_ledger.kernel.policy import LedgerPolicy, default_ledger_policy


def apply_delta(
    budget: Budget,
    delta: Decimal,
    policy: LedgerPolicy = default_ledger_policy,
) -> Budget:
    """
    Move executed_amount by delta, keeping 0 ≤ executed ≤ allocated

    Args:
        budget: Current budget snapshot
        delta: Change in contribution (positive consumes, negative releases)
        policy: Supplies the money precision

    Returns:
        A new Budget with the adjusted executed_amount

    Raises:
        BudgetExceeded: If the result would exceed allocated_amount
        NegativeBalance: If the result would fall below zero
    """
    amount = to_money(delta, "delta", policy)
    new_executed = budget.executed_amount + amount

    if new_executed > budget.allocated_amount:
        raise BudgetExceeded(
            budget_id=budget.budget_id,
            delta=str(amount),
            executed=str(budget.executed_amount),
            allocated=str(budget.allocated_amount),
        )

    if new_executed < 0:
        raise NegativeBalance(
            budget_id=budget.budget_id,
            delta=str(amount),
            executed=str(budget.executed_amount),
        )

    return budget.model_copy(update={"executed_amount": new_executed})


def validate_allocation_covers_executed(budget: Budget, new_allocation: Decimal) -> None:
    """
    Ensure a re-derived allocation still covers what was already consumed

    Raises:
        AllocationBelowExecuted: If new_allocation < executed_amount
    """
    if new_allocation < budget.executed_amount:
        raise AllocationBelowExecuted(
            budget_id=budget.budget_id,
            new_allocation=str(new_allocation),
            executed=str(budget.executed_amount),
        )


def load_budget(budget_id: str, budget_registry: dict) -> Budget:
    """
    Rebuild a Budget model from its projection record

    Raises:
        BudgetNotFound: If the budget is not in the registry
    """
    record = budget_registry.get(budget_id)
    if record is None:
        raise BudgetNotFound(budget_id)
    return Budget.model_validate(record)
