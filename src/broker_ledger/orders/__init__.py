"""
Orders Module - service orders drawn against budgets

Validates every order create/edit against its budget and drives the order
lifecycle PENDIENTE → EJECUTADO → FACTURADO, with ANULADO as the terminal
exit that releases the order's value.
"""

from broker_ledger.orders.models import OrderState, ServiceOrder

__all__ = [
    "OrderState",
    "ServiceOrder",
]
