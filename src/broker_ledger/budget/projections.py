"""
Budget Module Projections - read models built from budget events

BudgetRegistry: current state of every budget, including the running
executed_amount. Amounts are kept as strings exactly as they appear in event
payloads; Budget.model_validate turns a record back into Decimals.
"""

from broker_ledger.budget.models import BudgetStatus
from broker_ledger.kernel.events import Event


class BudgetRegistry:
    """
    Main budget projection - current state of all budgets

    Built from events: BudgetCreated, BudgetEdited, AllocationRecomputed,
                       BudgetStatusChanged, BudgetBalanceAdjusted

    Query methods: get, list_by_client, list_by_status, list_all
    """

    def __init__(self) -> None:
        self.budgets: dict[str, dict] = {}

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the projection

        Args:
            event: Event to apply
        """
        if event.event_type == "BudgetCreated":
            self._apply_budget_created(event)
        elif event.event_type == "BudgetEdited":
            self._apply_budget_edited(event)
        elif event.event_type == "AllocationRecomputed":
            self._apply_allocation_recomputed(event)
        elif event.event_type == "BudgetStatusChanged":
            self._apply_status_changed(event)
        elif event.event_type == "BudgetBalanceAdjusted":
            self._apply_balance_adjusted(event)

    def _apply_budget_created(self, event: Event) -> None:
        payload = event.payload
        budget_id = payload["budget_id"]

        self.budgets[budget_id] = {
            "budget_id": budget_id,
            "client_id": payload["client_id"],
            "ally_id": payload.get("ally_id"),
            "total_commission_basis": payload["total_commission_basis"],
            "investment_percentage": payload["investment_percentage"],
            "allocated_amount": payload["allocated_amount"],
            "executed_amount": "0",
            "status": BudgetStatus.PENDING.value,
            "created_at": payload["created_at"],
            "updated_at": None,
            "metadata": payload.get("metadata", {}),
            "version": event.version,
        }

    def _apply_budget_edited(self, event: Event) -> None:
        payload = event.payload
        budget = self.budgets.get(payload["budget_id"])

        if budget is not None:
            budget["investment_percentage"] = payload["new_investment_percentage"]
            budget["total_commission_basis"] = payload["new_commission_basis"]
            budget["allocated_amount"] = payload["new_allocated_amount"]
            budget["ally_id"] = payload.get("ally_id")
            budget["updated_at"] = payload["edited_at"]
            budget["version"] = event.version

    def _apply_allocation_recomputed(self, event: Event) -> None:
        payload = event.payload
        budget = self.budgets.get(payload["budget_id"])

        if budget is not None:
            budget["total_commission_basis"] = payload["new_basis"]
            budget["allocated_amount"] = payload["new_allocated_amount"]
            budget["updated_at"] = payload["recomputed_at"]
            budget["version"] = event.version

    def _apply_status_changed(self, event: Event) -> None:
        payload = event.payload
        budget = self.budgets.get(payload["budget_id"])

        if budget is not None:
            budget["status"] = payload["new_status"]
            budget["updated_at"] = payload["changed_at"]
            budget["version"] = event.version

    def _apply_balance_adjusted(self, event: Event) -> None:
        payload = event.payload
        budget = self.budgets.get(payload["budget_id"])

        if budget is not None:
            budget["executed_amount"] = payload["executed_after"]
            budget["updated_at"] = payload["adjusted_at"]
            budget["version"] = event.version

    # ========== Query Methods ==========

    def get(self, budget_id: str) -> dict | None:
        """
        Get budget by ID

        Returns:
            Budget dict or None if not found
        """
        return self.budgets.get(budget_id)

    def list_by_client(self, client_id: str) -> list[dict]:
        """List all budgets funded by a client"""
        return [
            budget for budget in self.budgets.values() if budget["client_id"] == client_id
        ]

    def list_by_status(self, status: BudgetStatus) -> list[dict]:
        """List all budgets with given status"""
        return [
            budget
            for budget in self.budgets.values()
            if budget["status"] == status.value
        ]

    def list_all(self) -> list[dict]:
        """List all budgets"""
        return list(self.budgets.values())
