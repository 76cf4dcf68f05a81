"""
Order Module Commands - intentions to change service orders

Every command that can move an order's contribution is validated against its
budget; the order change and the balance change commit together or not at all.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from broker_ledger.orders.models import OrderState


class CreateServiceOrder(BaseModel):
    """
    Create a PENDIENTE order against a budget

    client_id and ally_id default to the budget's values.
    """

    budget_id: str
    order_number: str = Field(..., min_length=1, max_length=100)
    quantity: Decimal
    unit_cost: Decimal
    client_id: str | None = None
    ally_id: str | None = None
    service_description: str | None = Field(default=None, max_length=2000)
    program: str | None = Field(default=None, max_length=200)
    sent_date: date | None = None


class UpdateServiceOrder(BaseModel):
    """
    Edit an order; omitted fields keep their current value

    Changing state, quantity, unit cost or budget re-validates the order's
    contribution against its budget(s).
    """

    order_id: str
    budget_id: str | None = None
    quantity: Decimal | None = None
    unit_cost: Decimal | None = None
    state: OrderState | None = None
    invoice_number: str | None = None
    filing_date: date | None = None
    client_id: str | None = None
    ally_id: str | None = None
    service_description: str | None = Field(default=None, max_length=2000)
    program: str | None = Field(default=None, max_length=200)
    sent_date: date | None = None


class MarkOrderExecuted(BaseModel):
    """PENDIENTE → EJECUTADO"""

    order_id: str


class RecordInvoice(BaseModel):
    """EJECUTADO → FACTURADO, recording the invoice number"""

    order_id: str
    invoice_number: str = ""
    filing_date: date | None = None


class AnnulOrder(BaseModel):
    """
    Annul an order (terminal)

    Releases the order's total back to its budget.
    """

    order_id: str
    reason: str = Field(default="", max_length=1000)


class DeleteOrder(BaseModel):
    """Remove an order, releasing whatever it still contributes"""

    order_id: str
    reason: str = Field(default="", max_length=1000)


ORDER_COMMAND_TYPES = {
    "CreateServiceOrder": CreateServiceOrder,
    "UpdateServiceOrder": UpdateServiceOrder,
    "MarkOrderExecuted": MarkOrderExecuted,
    "RecordInvoice": RecordInvoice,
    "AnnulOrder": AnnulOrder,
    "DeleteOrder": DeleteOrder,
}
