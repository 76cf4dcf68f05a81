"""
Tests for budget invariants, handlers and the budget registry projection

Handlers are exercised against plain dict registries; the registry tests feed
the handlers' events back in to check the projection follows them.
"""

from decimal import Decimal

import pytest

from broker_ledger.budget.commands import (
    CreateBudget,
    EditBudget,
    RecomputeAllocation,
    SetBudgetStatus,
)
from broker_ledger.budget.handlers import BudgetCommandHandlers
from broker_ledger.budget.invariants import (
    apply_delta,
    load_budget,
    validate_allocation_covers_executed,
)
from broker_ledger.budget.models import Budget, BudgetStatus
from broker_ledger.budget.projections import BudgetRegistry
from broker_ledger.kernel.errors import (
    AllocationBelowExecuted,
    BudgetExceeded,
    BudgetNotFound,
    NegativeBalance,
)
from broker_ledger.kernel.ids import generate_id
from tests.helpers import make_budget_record


def _budget(**kwargs) -> Budget:
    return Budget.model_validate(make_budget_record(**kwargs))


# =============================================================================
# Invariants
# =============================================================================


def test_apply_delta_consumes_balance() -> None:
    budget = _budget(allocated="600000.00", executed="0")
    adjusted = apply_delta(budget, Decimal("500000"))

    assert adjusted.executed_amount == Decimal("500000.00")
    assert adjusted.remaining_balance() == Decimal("100000.00")
    assert budget.executed_amount == Decimal("0")


def test_apply_delta_up_to_exact_allocation() -> None:
    budget = _budget(allocated="100.00", executed="40.00")
    assert apply_delta(budget, Decimal("60")).remaining_balance() == Decimal("0")


def test_apply_delta_rejects_overdraw() -> None:
    budget = _budget(allocated="600000.00", executed="500000.00")

    with pytest.raises(BudgetExceeded) as exc_info:
        apply_delta(budget, Decimal("200000"))

    assert exc_info.value.kind.value == "BudgetExceeded"
    assert exc_info.value.allocated == "600000.00"


def test_apply_delta_rejects_negative_executed() -> None:
    budget = _budget(allocated="100.00", executed="10.00")
    with pytest.raises(NegativeBalance):
        apply_delta(budget, Decimal("-10.01"))


def test_allocation_must_cover_executed() -> None:
    budget = _budget(allocated="600.00", executed="500.00")
    validate_allocation_covers_executed(budget, Decimal("500.00"))
    with pytest.raises(AllocationBelowExecuted):
        validate_allocation_covers_executed(budget, Decimal("499.99"))


def test_load_budget_missing() -> None:
    with pytest.raises(BudgetNotFound):
        load_budget("missing", {})


# =============================================================================
# Handlers
# =============================================================================


def test_create_budget_derives_allocation(budget_handlers: BudgetCommandHandlers) -> None:
    events = budget_handlers.handle_create_budget(
        CreateBudget(
            client_id="client-1",
            commission_basis=Decimal("1000000"),
            investment_percentage=Decimal("0.60"),
        ),
        command_id=generate_id(),
        actor_id="analyst-1",
    )

    assert len(events) == 1
    payload = events[0].payload
    assert events[0].event_type == "BudgetCreated"
    assert events[0].version == 1
    assert Decimal(payload["allocated_amount"]) == Decimal("600000.00")
    assert payload["created_by"] == "analyst-1"


def test_edit_budget_rederives_allocation(budget_handlers: BudgetCommandHandlers) -> None:
    registry = {"budget-1": make_budget_record(executed="100000.00")}

    events = budget_handlers.handle_edit_budget(
        EditBudget(budget_id="budget-1", investment_percentage=Decimal("0.5")),
        command_id=generate_id(),
        actor_id=None,
        budget_registry=registry,
    )

    assert events[0].event_type == "BudgetEdited"
    assert events[0].version == 2
    assert Decimal(events[0].payload["new_allocated_amount"]) == Decimal("500000.00")
    assert Decimal(events[0].payload["old_allocated_amount"]) == Decimal("600000.00")


def test_edit_budget_below_executed_rejected(budget_handlers: BudgetCommandHandlers) -> None:
    registry = {"budget-1": make_budget_record(executed="500000.00")}

    with pytest.raises(AllocationBelowExecuted):
        budget_handlers.handle_edit_budget(
            EditBudget(budget_id="budget-1", investment_percentage=Decimal("0.4")),
            command_id=generate_id(),
            actor_id=None,
            budget_registry=registry,
        )


def test_edit_budget_without_changes_is_noop(budget_handlers: BudgetCommandHandlers) -> None:
    registry = {"budget-1": make_budget_record()}
    events = budget_handlers.handle_edit_budget(
        EditBudget(budget_id="budget-1", investment_percentage=Decimal("0.6")),
        command_id=generate_id(),
        actor_id=None,
        budget_registry=registry,
    )
    assert events == []


def test_recompute_allocation_always_emits(budget_handlers: BudgetCommandHandlers) -> None:
    registry = {"budget-1": make_budget_record()}
    events = budget_handlers.handle_recompute_allocation(
        RecomputeAllocation(budget_id="budget-1", new_basis=Decimal("1000000"), reason="audit"),
        command_id=generate_id(),
        actor_id=None,
        budget_registry=registry,
    )
    assert len(events) == 1
    assert events[0].payload["reason"] == "audit"


def test_set_status_same_value_is_noop(budget_handlers: BudgetCommandHandlers) -> None:
    registry = {"budget-1": make_budget_record(status=BudgetStatus.ACTIVE)}
    command = SetBudgetStatus(budget_id="budget-1", status=BudgetStatus.ACTIVE)
    assert budget_handlers.handle_set_budget_status(command, generate_id(), None, registry) == []


def test_adjust_balance_zero_delta_emits_nothing(budget_handlers: BudgetCommandHandlers) -> None:
    event = budget_handlers.adjust_balance(
        _budget(), Decimal("0"), order_id="o1", reason="noop", command_id=generate_id(), actor_id=None
    )
    assert event is None


def test_adjust_balance_records_before_and_after(budget_handlers: BudgetCommandHandlers) -> None:
    event = budget_handlers.adjust_balance(
        _budget(executed="100.00", version=4),
        Decimal("50"),
        order_id="o1",
        reason="order created",
        command_id=generate_id(),
        actor_id=None,
    )
    assert event.version == 5
    assert Decimal(event.payload["executed_before"]) == Decimal("100.00")
    assert Decimal(event.payload["executed_after"]) == Decimal("150.00")


# =============================================================================
# Projection
# =============================================================================


def test_registry_follows_handler_events(
    budget_handlers: BudgetCommandHandlers, budget_registry: BudgetRegistry
) -> None:
    created = budget_handlers.handle_create_budget(
        CreateBudget(
            client_id="client-1",
            commission_basis=Decimal("1000"),
            investment_percentage=Decimal("0.5"),
        ),
        command_id=generate_id(),
        actor_id=None,
    )
    for event in created:
        budget_registry.apply_event(event)
    budget_id = created[0].stream_id

    budget = load_budget(budget_id, budget_registry.budgets)
    assert budget.status == BudgetStatus.PENDING
    assert budget.executed_amount == Decimal("0")

    balance = budget_handlers.adjust_balance(
        budget, Decimal("200"), order_id="o1", reason="x", command_id=generate_id(), actor_id=None
    )
    budget_registry.apply_event(balance)
    status = budget_handlers.handle_set_budget_status(
        SetBudgetStatus(budget_id=budget_id, status=BudgetStatus.ACTIVE),
        generate_id(),
        None,
        budget_registry.budgets,
    )
    for event in status:
        budget_registry.apply_event(event)

    budget = load_budget(budget_id, budget_registry.budgets)
    assert budget.executed_amount == Decimal("200.00")
    assert budget.status == BudgetStatus.ACTIVE
    assert budget.version == 3
    assert budget_registry.list_by_client("client-1")[0]["budget_id"] == budget_id
    assert len(budget_registry.list_by_status(BudgetStatus.ACTIVE)) == 1
