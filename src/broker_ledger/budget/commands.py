"""
Budget Module Commands - intentions to change a budget

Amounts arrive here already parsed by Ledger Math; handlers re-derive every
computed value so a command can never smuggle in an allocated amount.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from broker_ledger.budget.models import BudgetStatus


class CreateBudget(BaseModel):
    """
    Create a budget for a client

    allocated_amount is derived from commission_basis × investment_percentage;
    the budget starts PENDING with nothing executed.
    """

    client_id: str = Field(..., min_length=1)
    commission_basis: Decimal
    investment_percentage: Decimal
    ally_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class EditBudget(BaseModel):
    """
    Edit percentage, basis or ally of an existing budget

    Omitted fields keep their current value. A changed allocation must still
    cover the executed amount.
    """

    budget_id: str
    investment_percentage: Decimal | None = None
    commission_basis: Decimal | None = None
    ally_id: str | None = None


class RecomputeAllocation(BaseModel):
    """
    Re-derive the allocation from a new commission basis

    Explicit and audited: the ledger never enlarges a budget on its own when
    new commissions arrive.
    """

    budget_id: str
    new_basis: Decimal
    reason: str = Field(default="", max_length=1000)


class SetBudgetStatus(BaseModel):
    """Move a budget to a user-chosen lifecycle state"""

    budget_id: str
    status: BudgetStatus


BUDGET_COMMAND_TYPES = {
    "CreateBudget": CreateBudget,
    "EditBudget": EditBudget,
    "RecomputeAllocation": RecomputeAllocation,
    "SetBudgetStatus": SetBudgetStatus,
}
