"""
Budget Domain Models - a client's spending envelope

A budget is derived from the commissions recorded for one client:

    allocated_amount = total_commission_basis × investment_percentage

Service orders draw against it. executed_amount is the running total of
every non-annulled order and must stay within [0, allocated_amount].
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from broker_ledger.budget.ledger_math import execution_ratio, remaining_balance


class BudgetStatus(str, Enum):
    """
    Budget lifecycle states

    Transitions are chosen by users; the ledger never derives them from the
    balance. Reports show a derived status separately, as advice.
    """

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    IN_EXECUTION = "IN_EXECUTION"
    COMPLETED = "COMPLETED"


class Budget(BaseModel):
    """
    Client budget with its running balance

    Attributes:
        budget_id: Unique identifier
        client_id: Client whose commissions fund the budget
        ally_id: Ally assigned to execute the orders, if any
        total_commission_basis: Commission sum the allocation was derived from
        investment_percentage: Fraction of the basis set aside for spending
        allocated_amount: basis × percentage, quantized
        executed_amount: Sum of totals of non-annulled orders
        status: User-chosen lifecycle state
        version: Stream version the snapshot reflects
    """

    budget_id: str
    client_id: str
    ally_id: str | None = None
    total_commission_basis: Decimal = Field(ge=0)
    investment_percentage: Decimal = Field(ge=0, le=1)
    allocated_amount: Decimal = Field(ge=0)
    executed_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: BudgetStatus = BudgetStatus.PENDING
    created_at: datetime
    updated_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(default=1, ge=1)

    def remaining_balance(self) -> Decimal:
        """Amount still available for new orders"""
        return remaining_balance(self)

    def execution_ratio(self) -> Decimal:
        """Executed amount as a fraction of the allocation"""
        return execution_ratio(self.executed_amount, self.allocated_amount)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "budget_id": "01908e9a-3b80-7000-8000-0000000000aa",
                    "client_id": "client-001",
                    "ally_id": None,
                    "total_commission_basis": "1000000.00",
                    "investment_percentage": "0.60",
                    "allocated_amount": "600000.00",
                    "executed_amount": "500000.00",
                    "status": "ACTIVE",
                    "created_at": "2025-01-15T10:00:00Z",
                    "version": 3,
                }
            ]
        }
    }
