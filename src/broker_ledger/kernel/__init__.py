"""
Kernel - event sourcing infrastructure shared by every ledger module

The kernel enforces idempotency, append-only semantics and optimistic locking.
Budgets, orders and commissions are all streams in the same event log.
"""

from broker_ledger.kernel.errors import (
    BudgetNotFound,
    CommandIdempotencyViolation,
    DomainError,
    ErrorKind,
    EventStoreError,
    LedgerError,
    OrderNotFound,
    StreamVersionConflict,
)
from broker_ledger.kernel.event_store import SQLiteEventStore, StreamAppend
from broker_ledger.kernel.events import Event, create_event
from broker_ledger.kernel.ids import IdFactory, generate_id
from broker_ledger.kernel.policy import LedgerPolicy, default_ledger_policy
from broker_ledger.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & storage
    "Event",
    "create_event",
    "SQLiteEventStore",
    "StreamAppend",
    # Policy
    "LedgerPolicy",
    "default_ledger_policy",
    # Errors
    "LedgerError",
    "EventStoreError",
    "CommandIdempotencyViolation",
    "StreamVersionConflict",
    "DomainError",
    "ErrorKind",
    "BudgetNotFound",
    "OrderNotFound",
]
