"""
Order Module Events - facts about service orders

Each order event is appended together with the BudgetBalanceAdjusted
event(s) it caused, under the same command_id.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from broker_ledger.orders.models import OrderState


class OrderCreated(BaseModel):
    """A PENDIENTE order was created and its total consumed from the budget"""

    order_id: str
    order_number: str
    budget_id: str
    client_id: str
    ally_id: str | None
    quantity: Decimal
    unit_cost: Decimal
    total: Decimal
    state: OrderState
    service_description: str | None
    program: str | None
    sent_date: date | None
    created_at: datetime
    created_by: str | None


class OrderUpdated(BaseModel):
    """
    An order was edited

    Carries the full post-edit snapshot plus the previous budget, total and
    state, so the contribution change can be audited from the event alone.
    """

    order_id: str
    budget_id: str
    previous_budget_id: str
    quantity: Decimal
    unit_cost: Decimal
    total: Decimal
    previous_total: Decimal
    from_state: OrderState
    to_state: OrderState
    invoice_number: str | None
    filing_date: date | None
    client_id: str
    ally_id: str | None
    service_description: str | None
    program: str | None
    sent_date: date | None
    updated_at: datetime
    updated_by: str | None


class OrderAnnulled(BaseModel):
    """An order was annulled; released_amount went back to its budget"""

    order_id: str
    budget_id: str
    from_state: OrderState
    released_amount: Decimal
    reason: str
    annulled_at: datetime
    annulled_by: str | None


class OrderDeleted(BaseModel):
    """An order was removed; released_amount went back to its budget"""

    order_id: str
    budget_id: str
    state: OrderState
    released_amount: Decimal
    reason: str
    deleted_at: datetime
    deleted_by: str | None


ORDER_EVENT_TYPES = {
    "OrderCreated": OrderCreated,
    "OrderUpdated": OrderUpdated,
    "OrderAnnulled": OrderAnnulled,
    "OrderDeleted": OrderDeleted,
}
