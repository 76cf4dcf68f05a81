"""
Service Order Models - draws against a budget and their lifecycle

State machine (initial state PENDIENTE):

    PENDIENTE --(mark executed)--> EJECUTADO --(invoice recorded)--> FACTURADO
    PENDIENTE | EJECUTADO | FACTURADO --(annul)--> ANULADO (terminal)

Every state except ANULADO counts the order's total toward its budget's
executed_amount.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class OrderState(str, Enum):
    """Lifecycle states of a service order"""

    PENDIENTE = "PENDIENTE"  # Pending
    EJECUTADO = "EJECUTADO"  # Executed
    FACTURADO = "FACTURADO"  # Invoiced
    ANULADO = "ANULADO"  # Annulled, terminal

    @property
    def counts_toward_budget(self) -> bool:
        """Annulled orders release their value; every other state consumes it"""
        return self is not OrderState.ANULADO

    @property
    def is_terminal(self) -> bool:
        return self is OrderState.ANULADO

    def can_transition_to(self, target: "OrderState") -> bool:
        """
        Check a state change against the lifecycle

        Staying in the same state is an ordinary edit and allowed everywhere
        except ANULADO, which accepts no edits at all.
        """
        if self.is_terminal:
            return False
        if target == self:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[OrderState, frozenset[OrderState]] = {
    OrderState.PENDIENTE: frozenset({OrderState.EJECUTADO, OrderState.ANULADO}),
    OrderState.EJECUTADO: frozenset({OrderState.FACTURADO, OrderState.ANULADO}),
    OrderState.FACTURADO: frozenset({OrderState.ANULADO}),
    OrderState.ANULADO: frozenset(),
}


class ServiceOrder(BaseModel):
    """
    A single draw against exactly one budget

    client_id and ally_id are copied from the budget at creation and may be
    edited independently afterwards.

    Attributes:
        order_id: Unique identifier
        order_number: Business number printed on the order (OS number)
        budget_id: Budget the order draws from
        quantity: Units (hours, sessions...) ordered
        unit_cost: Cost per unit, quantized money
        total: quantity × unit_cost, quantized
        state: Lifecycle state
        invoice_number: Required once the order is FACTURADO
        filing_date: Date the invoice was filed
        program: Program the service belongs to, for reporting
        version: Stream version the snapshot reflects
    """

    order_id: str
    order_number: str
    budget_id: str
    client_id: str
    ally_id: str | None = None
    quantity: Decimal = Field(ge=0)
    unit_cost: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)
    state: OrderState = OrderState.PENDIENTE
    invoice_number: str | None = None
    filing_date: date | None = None
    sent_date: date | None = None
    service_description: str | None = None
    program: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    version: int = Field(default=1, ge=1)

    def contribution(self) -> Decimal:
        """What this order currently adds to its budget's executed_amount"""
        return self.total if self.state.counts_toward_budget else Decimal("0")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "01908e9a-3b90-7000-8000-0000000000bb",
                    "order_number": "OS-2025-014",
                    "budget_id": "01908e9a-3b80-7000-8000-0000000000aa",
                    "client_id": "client-001",
                    "ally_id": "ally-007",
                    "quantity": "10",
                    "unit_cost": "50000.00",
                    "total": "500000.00",
                    "state": "EJECUTADO",
                    "program": "Safety training",
                    "created_at": "2025-02-01T09:00:00Z",
                    "version": 2,
                }
            ]
        }
    }
