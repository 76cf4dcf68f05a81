"""
Budget Module Events - facts about budgets

BudgetBalanceAdjusted is the only event that moves executed_amount. Every
other event changes the allocation, the ally or the status.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from broker_ledger.budget.models import BudgetStatus


class BudgetCreated(BaseModel):
    """A budget was created in PENDING status with nothing executed"""

    budget_id: str
    client_id: str
    ally_id: str | None
    total_commission_basis: Decimal
    investment_percentage: Decimal
    allocated_amount: Decimal
    created_at: datetime
    created_by: str | None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BudgetEdited(BaseModel):
    """
    A budget's percentage, basis or ally was edited

    Old and new values are both recorded for the audit trail.
    """

    budget_id: str
    old_investment_percentage: Decimal
    new_investment_percentage: Decimal
    old_commission_basis: Decimal
    new_commission_basis: Decimal
    old_allocated_amount: Decimal
    new_allocated_amount: Decimal
    ally_id: str | None
    edited_at: datetime
    edited_by: str | None


class AllocationRecomputed(BaseModel):
    """The allocation was explicitly re-derived from a new commission basis"""

    budget_id: str
    old_basis: Decimal
    new_basis: Decimal
    old_allocated_amount: Decimal
    new_allocated_amount: Decimal
    reason: str
    recomputed_at: datetime
    recomputed_by: str | None


class BudgetStatusChanged(BaseModel):
    """A user moved the budget to another lifecycle state"""

    budget_id: str
    old_status: BudgetStatus
    new_status: BudgetStatus
    changed_at: datetime
    changed_by: str | None


class BudgetBalanceAdjusted(BaseModel):
    """
    executed_amount moved by delta because of a service order change

    executed_before/executed_after make each event self-checking on replay.
    """

    budget_id: str
    order_id: str
    delta: Decimal
    executed_before: Decimal
    executed_after: Decimal
    allocated_amount: Decimal
    reason: str
    adjusted_at: datetime
    adjusted_by: str | None


BUDGET_EVENT_TYPES = {
    "BudgetCreated": BudgetCreated,
    "BudgetEdited": BudgetEdited,
    "AllocationRecomputed": AllocationRecomputed,
    "BudgetStatusChanged": BudgetStatusChanged,
    "BudgetBalanceAdjusted": BudgetBalanceAdjusted,
}
