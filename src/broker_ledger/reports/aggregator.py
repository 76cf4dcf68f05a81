"""
Client Data Aggregator - read-only rollups over the projections

Nothing here writes; every method is a pure function of the registries it
was given.
"""

from decimal import Decimal

from broker_ledger.budget.invariants import load_budget
from broker_ledger.budget.ledger_math import execution_ratio
from broker_ledger.budget.models import Budget, BudgetStatus
from broker_ledger.budget.projections import BudgetRegistry
from broker_ledger.commissions.models import Commission
from broker_ledger.commissions.projections import CommissionLedger
from broker_ledger.orders.models import OrderState, ServiceOrder
from broker_ledger.orders.projections import OrderRegistry
from broker_ledger.reports.models import (
    BudgetExecution,
    ClientCommissionTotals,
    ClientPortalSummary,
    PortfolioExecution,
    ProgramExecution,
)

UNCATEGORIZED_PROGRAM = "Sin Categoría"

_EXECUTED_STATES = {OrderState.EJECUTADO, OrderState.FACTURADO}
_ACTIVE_STATES = {OrderState.PENDIENTE, OrderState.EJECUTADO}


def advisory_status(executed: Decimal, allocated: Decimal) -> BudgetStatus:
    """
    Status suggested by the execution ratio

    ACTIVE at 0 %, IN_EXECUTION in between, COMPLETED at 100 % or more.
    """
    ratio = execution_ratio(executed, allocated)
    if ratio >= 1:
        return BudgetStatus.COMPLETED
    if ratio > 0:
        return BudgetStatus.IN_EXECUTION
    return BudgetStatus.ACTIVE


class ClientDataAggregator:
    """Rollups for dashboards, reports and the client portal"""

    def __init__(
        self,
        budget_registry: BudgetRegistry,
        order_registry: OrderRegistry,
        commission_ledger: CommissionLedger,
    ) -> None:
        self.budget_registry = budget_registry
        self.order_registry = order_registry
        self.commission_ledger = commission_ledger

    def client_commissions(self, client_id: str) -> list[Commission]:
        return [
            Commission.model_validate(record)
            for record in self.commission_ledger.list_by_client(client_id)
        ]

    def client_commission_totals(self, client_id: str) -> ClientCommissionTotals:
        """Commission and premium sums for one client"""
        commissions = self.client_commissions(client_id)
        return ClientCommissionTotals(
            client_id=client_id,
            commission_total=sum(
                (c.commission_amount for c in commissions), Decimal("0")
            ),
            premium_total=sum((c.premium_amount for c in commissions), Decimal("0")),
            commission_count=len(commissions),
        )

    def budget_execution(self, budget_id: str) -> BudgetExecution:
        """
        Execution figures for one budget

        Raises:
            BudgetNotFound: If the budget doesn't exist
        """
        budget = load_budget(budget_id, self.budget_registry.budgets)
        return self._execution(budget)

    def _execution(self, budget: Budget) -> BudgetExecution:
        return BudgetExecution(
            budget_id=budget.budget_id,
            client_id=budget.client_id,
            allocated_amount=budget.allocated_amount,
            executed_amount=budget.executed_amount,
            remaining_balance=budget.remaining_balance(),
            execution_ratio=budget.execution_ratio(),
            status=budget.status,
            advisory_status=advisory_status(
                budget.executed_amount, budget.allocated_amount
            ),
            order_count=len(self.order_registry.list_by_budget(budget.budget_id)),
        )

    def client_portal_summary(self, client_id: str) -> ClientPortalSummary:
        """
        Totals shown to a client: income, budgets and orders still in flight

        Active orders are those neither annulled nor invoiced.
        """
        totals = self.client_commission_totals(client_id)
        budgets = [
            Budget.model_validate(record)
            for record in self.budget_registry.list_by_client(client_id)
        ]
        orders = [
            ServiceOrder.model_validate(record)
            for record in self.order_registry.list_by_client(client_id)
        ]

        return ClientPortalSummary(
            client_id=client_id,
            commission_total=totals.commission_total,
            premium_total=totals.premium_total,
            allocated_total=sum((b.allocated_amount for b in budgets), Decimal("0")),
            executed_total=sum((b.executed_amount for b in budgets), Decimal("0")),
            budget_count=len(budgets),
            active_orders=sum(1 for o in orders if o.state in _ACTIVE_STATES),
        )

    def program_breakdown(self) -> list[ProgramExecution]:
        """
        Projected vs executed investment per program

        Projected counts every non-annulled order; executed counts only
        EJECUTADO and FACTURADO orders. Sorted by program name.
        """
        stats: dict[str, dict] = {}
        for record in self.order_registry.list_all():
            order = ServiceOrder.model_validate(record)
            if not order.state.counts_toward_budget:
                continue

            program = (order.program or "").strip() or UNCATEGORIZED_PROGRAM
            entry = stats.setdefault(
                program,
                {"projected": Decimal("0"), "executed": Decimal("0"), "count": 0},
            )
            entry["projected"] += order.total
            if order.state in _EXECUTED_STATES:
                entry["executed"] += order.total
            entry["count"] += 1

        return [
            ProgramExecution(
                program=program,
                projected_amount=entry["projected"],
                executed_amount=entry["executed"],
                execution_ratio=execution_ratio(entry["executed"], entry["projected"]),
                order_count=entry["count"],
            )
            for program, entry in sorted(stats.items())
        ]

    def portfolio_execution(self) -> PortfolioExecution:
        """Allocated, executed and remaining across all budgets"""
        budgets = [Budget.model_validate(r) for r in self.budget_registry.list_all()]
        allocated = sum((b.allocated_amount for b in budgets), Decimal("0"))
        executed = sum((b.executed_amount for b in budgets), Decimal("0"))

        return PortfolioExecution(
            allocated_total=allocated,
            executed_total=executed,
            remaining_total=allocated - executed,
            execution_ratio=execution_ratio(executed, allocated),
            budget_count=len(budgets),
        )
