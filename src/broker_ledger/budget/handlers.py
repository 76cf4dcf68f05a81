"""
Budget Module Handlers - Command→Event transformation

Handlers are the decision-making layer. They:
1. Load current state (from projections)
2. Validate invariants
3. Generate events if valid
4. Return events for append to the event store

adjust_balance is called by the order handlers rather than by a command of
its own: a balance change only ever happens as part of an order change, and
both are committed in the same store transaction.
"""

from datetime import datetime
from decimal import Decimal

from broker_ledger.budget.commands import (
    CreateBudget,
    EditBudget,
    RecomputeAllocation,
    SetBudgetStatus,
)
from broker_ledger.budget.events import (
    AllocationRecomputed,
    BudgetBalanceAdjusted,
    BudgetCreated,
    BudgetEdited,
    BudgetStatusChanged,
)
from broker_ledger.budget.invariants import (
    apply_delta,
    load_budget,
    validate_allocation_covers_executed,
)
from broker_ledger.budget.ledger_math import (
    derive_allocated_amount,
    to_fraction,
    to_non_negative_money,
)
from broker_ledger.budget.models import Budget
from broker_ledger.kernel.events import Event, create_event
from broker_ledger.kernel.ids import generate_id
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.time import TimeProvider


class BudgetCommandHandlers:
    """
    Command handlers for the budget module

    Handlers convert commands into events. They depend on projections to
    get current state and never write anything themselves.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: LedgerPolicy,
    ) -> None:
        """
        Initialize handlers with dependencies

        Args:
            time_provider: For timestamps (injectable for testing)
            policy: Money precision and ledger rules
        """
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_budget(
        self,
        command: CreateBudget,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        """
        Handle CreateBudget command

        Args:
            command: CreateBudget command
            command_id: Idempotency key
            actor_id: Who issued the command

        Returns:
            List of events to append

        Raises:
            InvalidFraction: If the percentage is outside [0, 1]
            InvalidQuantityOrCost: If the basis is negative
        """
        now = self.time_provider.now()

        basis = to_non_negative_money(
            command.commission_basis, "commission_basis", self.policy
        )
        percentage = to_fraction(command.investment_percentage)
        allocated = derive_allocated_amount(basis, percentage, self.policy)

        budget_id = generate_id()

        event_payload = BudgetCreated(
            budget_id=budget_id,
            client_id=command.client_id,
            ally_id=command.ally_id,
            total_commission_basis=basis,
            investment_percentage=percentage,
            allocated_amount=allocated,
            created_at=now,
            created_by=actor_id,
            metadata=command.metadata,
        ).model_dump(mode="json")

        event = create_event(
            event_id=generate_id(),
            stream_id=budget_id,
            stream_type="budget",
            event_type="BudgetCreated",
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=event_payload,
            version=1,
        )

        return [event]

    def handle_edit_budget(
        self,
        command: EditBudget,
        command_id: str,
        actor_id: str | None,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle EditBudget command

        Re-derives allocated_amount from the (possibly new) basis and
        percentage. An edit that changes nothing produces no event.

        Raises:
            BudgetNotFound: If budget doesn't exist
            InvalidFraction: If the new percentage is outside [0, 1]
            AllocationBelowExecuted: If the new allocation no longer covers
                the executed amount
        """
        now = self.time_provider.now()
        budget = load_budget(command.budget_id, budget_registry)

        percentage = (
            to_fraction(command.investment_percentage)
            if command.investment_percentage is not None
            else budget.investment_percentage
        )
        basis = (
            to_non_negative_money(command.commission_basis, "commission_basis", self.policy)
            if command.commission_basis is not None
            else budget.total_commission_basis
        )
        ally_id = command.ally_id if command.ally_id is not None else budget.ally_id

        new_allocated = derive_allocated_amount(basis, percentage, self.policy)
        validate_allocation_covers_executed(budget, new_allocated)

        if (
            percentage == budget.investment_percentage
            and basis == budget.total_commission_basis
            and ally_id == budget.ally_id
        ):
            return []

        event_payload = BudgetEdited(
            budget_id=budget.budget_id,
            old_investment_percentage=budget.investment_percentage,
            new_investment_percentage=percentage,
            old_commission_basis=budget.total_commission_basis,
            new_commission_basis=basis,
            old_allocated_amount=budget.allocated_amount,
            new_allocated_amount=new_allocated,
            ally_id=ally_id,
            edited_at=now,
            edited_by=actor_id,
        ).model_dump(mode="json")

        return [
            self._budget_event(budget, "BudgetEdited", event_payload, now, command_id, actor_id)
        ]

    def handle_recompute_allocation(
        self,
        command: RecomputeAllocation,
        command_id: str,
        actor_id: str | None,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle RecomputeAllocation command

        Always records an event, even when the basis did not move, so every
        explicit re-derivation leaves an audit entry.

        Raises:
            BudgetNotFound: If budget doesn't exist
            AllocationBelowExecuted: If the new allocation no longer covers
                the executed amount
        """
        now = self.time_provider.now()
        budget = load_budget(command.budget_id, budget_registry)

        new_basis = to_non_negative_money(command.new_basis, "new_basis", self.policy)
        new_allocated = derive_allocated_amount(
            new_basis, budget.investment_percentage, self.policy
        )
        validate_allocation_covers_executed(budget, new_allocated)

        event_payload = AllocationRecomputed(
            budget_id=budget.budget_id,
            old_basis=budget.total_commission_basis,
            new_basis=new_basis,
            old_allocated_amount=budget.allocated_amount,
            new_allocated_amount=new_allocated,
            reason=command.reason,
            recomputed_at=now,
            recomputed_by=actor_id,
        ).model_dump(mode="json")

        return [
            self._budget_event(
                budget, "AllocationRecomputed", event_payload, now, command_id, actor_id
            )
        ]

    def handle_set_budget_status(
        self,
        command: SetBudgetStatus,
        command_id: str,
        actor_id: str | None,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle SetBudgetStatus command

        Setting the current status again is a no-op.

        Raises:
            BudgetNotFound: If budget doesn't exist
        """
        now = self.time_provider.now()
        budget = load_budget(command.budget_id, budget_registry)

        if budget.status == command.status:
            return []

        event_payload = BudgetStatusChanged(
            budget_id=budget.budget_id,
            old_status=budget.status,
            new_status=command.status,
            changed_at=now,
            changed_by=actor_id,
        ).model_dump(mode="json")

        return [
            self._budget_event(
                budget, "BudgetStatusChanged", event_payload, now, command_id, actor_id
            )
        ]

    def adjust_balance(
        self,
        budget: Budget,
        delta: Decimal,
        order_id: str,
        reason: str,
        command_id: str,
        actor_id: str | None,
    ) -> Event | None:
        """
        Validate a contribution delta and build the balance event

        Args:
            budget: Budget snapshot the delta applies to
            delta: Contribution change (positive consumes, negative releases)
            order_id: Order whose change caused the delta
            reason: Short description for the audit trail
            command_id: Idempotency key of the order command
            actor_id: Who issued the order command

        Returns:
            BudgetBalanceAdjusted event, or None for a zero delta

        Raises:
            BudgetExceeded: If the delta would overdraw the allocation
            NegativeBalance: If the delta would take executed below zero
        """
        if delta == 0:
            return None

        now = self.time_provider.now()
        adjusted = apply_delta(budget, delta, self.policy)

        event_payload = BudgetBalanceAdjusted(
            budget_id=budget.budget_id,
            order_id=order_id,
            delta=adjusted.executed_amount - budget.executed_amount,
            executed_before=budget.executed_amount,
            executed_after=adjusted.executed_amount,
            allocated_amount=budget.allocated_amount,
            reason=reason,
            adjusted_at=now,
            adjusted_by=actor_id,
        ).model_dump(mode="json")

        return self._budget_event(
            budget, "BudgetBalanceAdjusted", event_payload, now, command_id, actor_id
        )

    def _budget_event(
        self,
        budget: Budget,
        event_type: str,
        payload: dict,
        now: datetime,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=budget.budget_id,
            stream_type="budget",
            event_type=event_type,
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=payload,
            version=budget.version + 1,
        )
