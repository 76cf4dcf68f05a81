"""
Order Consumption Invariants - admissibility of order changes

An order change is admissible when its state transition is allowed, an
invoiced order carries an invoice number, locked financial fields stay put,
and the resulting contribution delta fits its budget (checked by
budget.invariants.apply_delta).

Contribution deltas:

    previous = prior total if the order was non-ANULADO, else 0 (0 when new)
    new      = proposed total if the proposed state is non-ANULADO, else 0
    delta    = new - previous

When the order moves to another budget the previous contribution is released
from the old budget and the new one consumed on the new budget.
"""

from decimal import Decimal

from broker_ledger.kernel.errors import (
    InvalidOrderTransition,
    InvoicedOrderLocked,
    MissingInvoiceNumber,
    OrderNotFound,
)
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.orders.models import OrderState, ServiceOrder


def order_contribution(total: Decimal, state: OrderState) -> Decimal:
    """Contribution of an order with this total in this state"""
    return total if state.counts_toward_budget else Decimal("0")


def validate_transition(order_id: str, current: OrderState, target: OrderState) -> None:
    """
    Raises:
        InvalidOrderTransition: If the lifecycle forbids current → target
    """
    if not current.can_transition_to(target):
        raise InvalidOrderTransition(order_id, current.value, target.value)


def validate_invoice_number(
    order_id: str, target: OrderState, invoice_number: str | None
) -> None:
    """
    Raises:
        MissingInvoiceNumber: If the order ends up FACTURADO without a number
    """
    if target == OrderState.FACTURADO and not (invoice_number or "").strip():
        raise MissingInvoiceNumber(order_id)


def validate_financials_unlocked(
    order: ServiceOrder,
    quantity: Decimal,
    unit_cost: Decimal,
    policy: LedgerPolicy,
) -> None:
    """
    Invoiced orders keep quantity and unit cost while the policy locks them

    Raises:
        InvoicedOrderLocked: If a FACTURADO order's financials would change
    """
    if not policy.lock_invoiced_financials:
        return
    if order.state != OrderState.FACTURADO:
        return
    if quantity != order.quantity or unit_cost != order.unit_cost:
        raise InvoicedOrderLocked(order.order_id)


def plan_contribution_deltas(
    previous_budget_id: str | None,
    previous_contribution: Decimal,
    new_budget_id: str,
    new_contribution: Decimal,
) -> list[tuple[str, Decimal]]:
    """
    Budget deltas needed for an order change, in application order

    A budget switch yields the release on the old budget first and the
    allocation on the new one second. Zero deltas are dropped.

    Returns:
        (budget_id, delta) pairs
    """
    if previous_budget_id is None or previous_budget_id == new_budget_id:
        steps = [(new_budget_id, new_contribution - previous_contribution)]
    else:
        steps = [
            (previous_budget_id, -previous_contribution),
            (new_budget_id, new_contribution),
        ]
    return [(budget_id, delta) for budget_id, delta in steps if delta != 0]


def load_order(order_id: str, order_registry: dict) -> ServiceOrder:
    """
    Rebuild a ServiceOrder from its projection record

    Raises:
        OrderNotFound: If the order is not in the registry
    """
    record = order_registry.get(order_id)
    if record is None:
        raise OrderNotFound(order_id)
    return ServiceOrder.model_validate(record)
