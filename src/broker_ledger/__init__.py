"""
Broker Ledger - event-sourced budget control for an insurance brokerage

Derives client budgets from commission income, validates every service
order against the remaining balance, and keeps an auditable history of
each allocation and consumption.
"""

__version__ = "0.1.0"

from broker_ledger.ledger import BudgetLedger  # noqa: E402

__all__ = ["BudgetLedger", "__version__"]
