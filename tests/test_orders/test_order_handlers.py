"""
Tests for the order lifecycle, consumption invariants and order handlers

Every order change is checked for the events it would append: the order
event plus zero, one or two balance adjustments.
"""

from decimal import Decimal

import pytest

from broker_ledger.kernel.errors import (
    BudgetExceeded,
    BudgetNotFound,
    InvalidOrderTransition,
    InvalidQuantityOrCost,
    InvoicedOrderLocked,
    MissingInvoiceNumber,
    OrderNotFound,
)
from broker_ledger.kernel.ids import generate_id
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.orders.commands import (
    AnnulOrder,
    CreateServiceOrder,
    DeleteOrder,
    MarkOrderExecuted,
    RecordInvoice,
    UpdateServiceOrder,
)
from broker_ledger.orders.handlers import OrderCommandHandlers
from broker_ledger.orders.invariants import plan_contribution_deltas
from broker_ledger.orders.models import OrderState
from broker_ledger.orders.projections import OrderRegistry
from tests.helpers import balance_events, make_budget_record, make_order_record


def _registries(
    executed: str = "500000.00",
    allocated: str = "600000.00",
    state: OrderState = OrderState.PENDIENTE,
    invoice_number: str | None = None,
):
    budgets = {
        "budget-1": make_budget_record(
            "budget-1", allocated=allocated, executed=executed, version=2
        )
    }
    orders = {
        "order-1": make_order_record(
            "order-1", state=state, invoice_number=invoice_number
        )
    }
    return orders, budgets


def _update(handlers: OrderCommandHandlers, orders, budgets, **fields):
    return handlers.handle_update_order(
        UpdateServiceOrder(order_id="order-1", **fields),
        command_id=generate_id(),
        actor_id="analyst-1",
        order_registry=orders,
        budget_registry=budgets,
    )


# =============================================================================
# Lifecycle
# =============================================================================


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (OrderState.PENDIENTE, OrderState.EJECUTADO, True),
        (OrderState.PENDIENTE, OrderState.FACTURADO, False),
        (OrderState.EJECUTADO, OrderState.FACTURADO, True),
        (OrderState.EJECUTADO, OrderState.PENDIENTE, False),
        (OrderState.FACTURADO, OrderState.ANULADO, True),
        (OrderState.FACTURADO, OrderState.EJECUTADO, False),
        (OrderState.ANULADO, OrderState.PENDIENTE, False),
        (OrderState.ANULADO, OrderState.ANULADO, False),
        (OrderState.EJECUTADO, OrderState.EJECUTADO, True),
    ],
)
def test_state_machine(current: OrderState, target: OrderState, allowed: bool) -> None:
    assert current.can_transition_to(target) is allowed


def test_only_annulled_releases_value() -> None:
    assert [s for s in OrderState if not s.counts_toward_budget] == [OrderState.ANULADO]


def test_budget_switch_releases_then_allocates() -> None:
    deltas = plan_contribution_deltas("b1", Decimal("100"), "b2", Decimal("120"))
    assert deltas == [("b1", Decimal("-100")), ("b2", Decimal("120"))]


def test_same_budget_nets_delta_and_drops_zero() -> None:
    assert plan_contribution_deltas("b1", Decimal("100"), "b1", Decimal("130")) == [
        ("b1", Decimal("30"))
    ]
    assert plan_contribution_deltas("b1", Decimal("100"), "b1", Decimal("100")) == []


# =============================================================================
# Create
# =============================================================================


def test_create_order_consumes_budget(order_handlers: OrderCommandHandlers) -> None:
    budgets = {"budget-1": make_budget_record(executed="0", version=1)}

    events = order_handlers.handle_create_order(
        CreateServiceOrder(
            budget_id="budget-1",
            order_number="OS-001",
            quantity=Decimal("10"),
            unit_cost=Decimal("50000"),
        ),
        command_id=generate_id(),
        actor_id=None,
        budget_registry=budgets,
    )

    assert [e.event_type for e in events] == ["OrderCreated", "BudgetBalanceAdjusted"]
    assert len({e.command_id for e in events}) == 1
    assert events[0].payload["state"] == "PENDIENTE"
    assert events[0].payload["client_id"] == "client-1"
    assert Decimal(events[1].payload["executed_after"]) == Decimal("500000.00")
    assert events[1].version == 2


def test_create_order_over_balance_rejected(order_handlers: OrderCommandHandlers) -> None:
    """600000 allocated, 500000 executed, a 200000 order"""
    budgets = {"budget-1": make_budget_record(executed="500000.00")}

    with pytest.raises(BudgetExceeded):
        order_handlers.handle_create_order(
            CreateServiceOrder(
                budget_id="budget-1",
                order_number="OS-002",
                quantity=Decimal("4"),
                unit_cost=Decimal("50000"),
            ),
            command_id=generate_id(),
            actor_id=None,
            budget_registry=budgets,
        )


def test_create_order_with_zero_total_has_no_balance_event(
    order_handlers: OrderCommandHandlers,
) -> None:
    budgets = {"budget-1": make_budget_record()}
    events = order_handlers.handle_create_order(
        CreateServiceOrder(
            budget_id="budget-1", order_number="OS-0", quantity=Decimal("0"), unit_cost=Decimal("10")
        ),
        command_id=generate_id(),
        actor_id=None,
        budget_registry=budgets,
    )
    assert balance_events(events) == []


def test_create_order_negative_cost_rejected(order_handlers: OrderCommandHandlers) -> None:
    with pytest.raises(InvalidQuantityOrCost):
        order_handlers.handle_create_order(
            CreateServiceOrder(
                budget_id="budget-1", order_number="OS-X", quantity=Decimal("1"), unit_cost=Decimal("-5")
            ),
            command_id=generate_id(),
            actor_id=None,
            budget_registry={"budget-1": make_budget_record()},
        )


def test_create_order_unknown_budget(order_handlers: OrderCommandHandlers) -> None:
    with pytest.raises(BudgetNotFound):
        order_handlers.handle_create_order(
            CreateServiceOrder(
                budget_id="nope", order_number="OS-X", quantity=Decimal("1"), unit_cost=Decimal("5")
            ),
            command_id=generate_id(),
            actor_id=None,
            budget_registry={},
        )


# =============================================================================
# Update
# =============================================================================


def test_edit_total_applies_net_delta(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()

    events = _update(order_handlers, orders, budgets, quantity=Decimal("12"))

    adjustments = balance_events(events)
    assert len(adjustments) == 1
    assert Decimal(adjustments[0].payload["delta"]) == Decimal("100000.00")
    assert Decimal(events[0].payload["total"]) == Decimal("600000.00")


def test_edit_total_over_balance_rejected(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()
    with pytest.raises(BudgetExceeded):
        _update(order_handlers, orders, budgets, quantity=Decimal("12.01"))


def test_state_change_without_new_total_has_no_balance_event(
    order_handlers: OrderCommandHandlers,
) -> None:
    orders, budgets = _registries()
    events = order_handlers.handle_mark_executed(
        MarkOrderExecuted(order_id="order-1"), generate_id(), None, orders, budgets
    )
    assert [e.event_type for e in events] == ["OrderUpdated"]
    assert events[0].payload["to_state"] == "EJECUTADO"


def test_unchanged_edit_is_noop(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()
    assert _update(order_handlers, orders, budgets, quantity=Decimal("10")) == []


def test_invalid_transition_rejected(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()
    with pytest.raises(InvalidOrderTransition):
        _update(order_handlers, orders, budgets, state=OrderState.FACTURADO, invoice_number="F-1")


def test_invoice_requires_number(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries(state=OrderState.EJECUTADO)
    with pytest.raises(MissingInvoiceNumber):
        order_handlers.handle_record_invoice(
            RecordInvoice(order_id="order-1", invoice_number="  "),
            generate_id(),
            None,
            orders,
            budgets,
        )
    with pytest.raises(MissingInvoiceNumber):
        _update(order_handlers, orders, budgets, state=OrderState.FACTURADO)


def test_record_invoice(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries(state=OrderState.EJECUTADO)
    events = order_handlers.handle_record_invoice(
        RecordInvoice(order_id="order-1", invoice_number=" FAC-77 "),
        generate_id(),
        None,
        orders,
        budgets,
    )
    assert events[0].payload["invoice_number"] == "FAC-77"
    assert events[0].payload["to_state"] == "FACTURADO"


def test_invoiced_financials_locked(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries(state=OrderState.FACTURADO, invoice_number="FAC-1")
    with pytest.raises(InvoicedOrderLocked):
        _update(order_handlers, orders, budgets, unit_cost=Decimal("40000"))

    # Non-financial fields stay editable
    events = _update(order_handlers, orders, budgets, program="Capacitación")
    assert events[0].payload["program"] == "Capacitación"


def test_invoiced_lock_can_be_disabled(test_time) -> None:
    handlers = OrderCommandHandlers(test_time, LedgerPolicy(lock_invoiced_financials=False))
    orders, budgets = _registries(state=OrderState.FACTURADO, invoice_number="FAC-1")

    events = _update(handlers, orders, budgets, unit_cost=Decimal("40000"))

    assert Decimal(balance_events(events)[0].payload["delta"]) == Decimal("-100000.00")


def test_budget_switch_moves_contribution(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()
    budgets["budget-2"] = make_budget_record("budget-2", allocated="1000000.00", executed="0")

    events = _update(order_handlers, orders, budgets, budget_id="budget-2")

    adjustments = balance_events(events)
    assert [(e.stream_id, Decimal(e.payload["delta"])) for e in adjustments] == [
        ("budget-1", Decimal("-500000.00")),
        ("budget-2", Decimal("500000.00")),
    ]


def test_budget_switch_into_full_budget_rejected(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries()
    budgets["budget-2"] = make_budget_record("budget-2", allocated="100.00", executed="0")
    with pytest.raises(BudgetExceeded):
        _update(order_handlers, orders, budgets, budget_id="budget-2")


def test_update_unknown_order(order_handlers: OrderCommandHandlers) -> None:
    with pytest.raises(OrderNotFound):
        order_handlers.handle_update_order(
            UpdateServiceOrder(order_id="missing"), generate_id(), None, {}, {}
        )


# =============================================================================
# Annul / delete
# =============================================================================


def test_annul_releases_exact_total(order_handlers: OrderCommandHandlers) -> None:
    """Annulling a 500000 order returns executed to 0"""
    orders, budgets = _registries()

    events = order_handlers.handle_annul_order(
        AnnulOrder(order_id="order-1", reason="client cancelled"),
        generate_id(),
        None,
        orders,
        budgets,
    )

    assert events[0].event_type == "OrderAnnulled"
    assert Decimal(events[0].payload["released_amount"]) == Decimal("500000.00")
    assert Decimal(events[1].payload["executed_after"]) == Decimal("0.00")


def test_annulled_order_accepts_no_edits(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries(state=OrderState.ANULADO, executed="0")
    with pytest.raises(InvalidOrderTransition):
        _update(order_handlers, orders, budgets, state=OrderState.PENDIENTE)
    with pytest.raises(InvalidOrderTransition):
        order_handlers.handle_annul_order(
            AnnulOrder(order_id="order-1"), generate_id(), None, orders, budgets
        )


def test_delete_annulled_order_releases_nothing(order_handlers: OrderCommandHandlers) -> None:
    orders, budgets = _registries(state=OrderState.ANULADO, executed="0")
    events = order_handlers.handle_delete_order(
        DeleteOrder(order_id="order-1"), generate_id(), None, orders, budgets
    )
    assert [e.event_type for e in events] == ["OrderDeleted"]


def test_registry_drops_deleted_orders(
    order_handlers: OrderCommandHandlers, order_registry: OrderRegistry
) -> None:
    budgets = {"budget-1": make_budget_record(executed="0")}
    created = order_handlers.handle_create_order(
        CreateServiceOrder(
            budget_id="budget-1", order_number="OS-1", quantity=Decimal("1"), unit_cost=Decimal("10")
        ),
        generate_id(),
        None,
        budgets,
    )
    order_registry.apply_event(created[0])
    order_id = created[0].stream_id
    assert order_registry.list_by_budget("budget-1")[0]["order_id"] == order_id

    budgets["budget-1"]["executed_amount"] = "10.00"
    budgets["budget-1"]["version"] = 2
    deleted = order_handlers.handle_delete_order(
        DeleteOrder(order_id=order_id), generate_id(), None, order_registry.orders, budgets
    )
    order_registry.apply_event(deleted[0])

    assert order_registry.get(order_id) is None
    assert Decimal(deleted[1].payload["delta"]) == Decimal("-10.00")
