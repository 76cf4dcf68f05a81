"""
Test Helper Functions - builders for projection records and events

Records are built in the same shape the registries store them (money as
strings), so handlers can be exercised without an event store.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from broker_ledger.budget.models import BudgetStatus
from broker_ledger.kernel.events import Event, create_event
from broker_ledger.kernel.ids import generate_id
from broker_ledger.orders.models import OrderState

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_budget_record(
    budget_id: str = "budget-1",
    client_id: str = "client-1",
    allocated: str = "600000.00",
    executed: str = "0",
    basis: str = "1000000.00",
    percentage: str = "0.6",
    status: BudgetStatus = BudgetStatus.ACTIVE,
    version: int = 1,
    ally_id: str | None = None,
) -> dict[str, Any]:
    """
    Builder for budget registry records

    Example:
        >>> registry = {"b1": make_budget_record("b1", allocated="100.00")}
    """
    return {
        "budget_id": budget_id,
        "client_id": client_id,
        "ally_id": ally_id,
        "total_commission_basis": basis,
        "investment_percentage": percentage,
        "allocated_amount": allocated,
        "executed_amount": executed,
        "status": status.value,
        "created_at": T0.isoformat(),
        "updated_at": None,
        "metadata": {},
        "version": version,
    }


def make_order_record(
    order_id: str = "order-1",
    budget_id: str = "budget-1",
    client_id: str = "client-1",
    quantity: str = "10",
    unit_cost: str = "50000.00",
    total: str | None = None,
    state: OrderState = OrderState.PENDIENTE,
    invoice_number: str | None = None,
    program: str | None = None,
    version: int = 1,
) -> dict[str, Any]:
    """Builder for order registry records; total defaults to quantity × unit_cost"""
    if total is None:
        total = str((Decimal(quantity) * Decimal(unit_cost)).quantize(Decimal("0.01")))
    return {
        "order_id": order_id,
        "order_number": f"OS-{order_id}",
        "budget_id": budget_id,
        "client_id": client_id,
        "ally_id": None,
        "quantity": quantity,
        "unit_cost": unit_cost,
        "total": total,
        "state": state.value,
        "invoice_number": invoice_number,
        "filing_date": None,
        "sent_date": None,
        "service_description": None,
        "program": program,
        "created_at": T0.isoformat(),
        "updated_at": None,
        "version": version,
    }


def make_event(
    stream_id: str = "stream-1",
    version: int = 1,
    command_id: str | None = None,
    event_type: str = "TestEvent",
    stream_type: str = "test",
    payload: dict | None = None,
) -> Event:
    """Builder for bare events used by event store tests"""
    return create_event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=T0,
        command_id=command_id or generate_id(),
        actor_id="tester",
        payload=payload or {},
        version=version,
    )


def balance_events(events: list[Event]) -> list[Event]:
    return [e for e in events if e.event_type == "BudgetBalanceAdjusted"]
