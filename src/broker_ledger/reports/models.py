"""
Report Models - read-only rollups for dashboards and the client portal
"""

from decimal import Decimal

from pydantic import BaseModel

from broker_ledger.budget.models import BudgetStatus


class ClientCommissionTotals(BaseModel):
    """Commission income of one client"""

    client_id: str
    commission_total: Decimal
    premium_total: Decimal
    commission_count: int


class BudgetExecution(BaseModel):
    """
    Execution of one budget

    status is the user-chosen lifecycle state; advisory_status is derived
    from the execution ratio and only shown as a hint.
    """

    budget_id: str
    client_id: str
    allocated_amount: Decimal
    executed_amount: Decimal
    remaining_balance: Decimal
    execution_ratio: Decimal
    status: BudgetStatus
    advisory_status: BudgetStatus
    order_count: int


class ClientPortalSummary(BaseModel):
    """Headline figures shown to a client in the portal"""

    client_id: str
    commission_total: Decimal
    premium_total: Decimal
    allocated_total: Decimal
    executed_total: Decimal
    budget_count: int
    active_orders: int


class ProgramExecution(BaseModel):
    """Projected vs executed investment of one program"""

    program: str
    projected_amount: Decimal
    executed_amount: Decimal
    execution_ratio: Decimal
    order_count: int


class PortfolioExecution(BaseModel):
    """Execution across every budget"""

    allocated_total: Decimal
    executed_total: Decimal
    remaining_total: Decimal
    execution_ratio: Decimal
    budget_count: int
