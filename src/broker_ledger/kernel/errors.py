"""
Exception hierarchy for the brokerage budget ledger

Every rejection the core can produce is a typed exception carrying a stable
``kind`` tag. The UI layer translates kinds into human-readable text; the
messages below are technical and never localized.
"""

from enum import Enum


class LedgerError(Exception):
    """Base exception for all ledger errors"""

    pass


class EventStoreError(LedgerError):
    """Base class for event store errors"""

    pass


class CommandIdempotencyViolation(EventStoreError):
    """
    Raised when a command_id was already used by a different operation

    A repeated command_id normally replays the stored events; reusing it for
    another kind of operation or another target is rejected instead.
    """

    def __init__(self, command_id: str, message: str = "") -> None:
        self.command_id = command_id
        super().__init__(message or f"Command {command_id} already processed")


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Another writer changed the stream first - reload and retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


class ErrorKind(str, Enum):
    """Stable tags for domain rejections"""

    INVALID_FRACTION = "InvalidFraction"
    INVALID_QUANTITY_OR_COST = "InvalidQuantityOrCost"
    BUDGET_EXCEEDED = "BudgetExceeded"
    NEGATIVE_BALANCE = "NegativeBalance"
    ALLOCATION_BELOW_EXECUTED = "AllocationBelowExecuted"
    INVALID_ORDER_TRANSITION = "InvalidOrderTransition"
    MISSING_INVOICE_NUMBER = "MissingInvoiceNumber"
    INVOICED_ORDER_LOCKED = "InvoicedOrderLocked"
    UNAUTHORIZED = "Unauthorized"


class DomainError(LedgerError):
    """
    A domain rule rejected the operation

    Nothing is persisted when a DomainError is raised - callers may fix the
    input and retry.
    """

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidFraction(DomainError):
    """Raised when an investment percentage is outside [0, 1]"""

    kind = ErrorKind.INVALID_FRACTION

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Fraction {value} is outside the range [0, 1]")


class InvalidQuantityOrCost(DomainError):
    """Raised when a quantity, cost or money operand is negative or not numeric"""

    kind = ErrorKind.INVALID_QUANTITY_OR_COST

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} must be a non-negative number, got {value!r}")


class BudgetExceeded(DomainError):
    """Raised when a delta would push executed_amount above allocated_amount"""

    kind = ErrorKind.BUDGET_EXCEEDED

    def __init__(
        self, budget_id: str, delta: str, executed: str, allocated: str
    ) -> None:
        self.budget_id = budget_id
        self.delta = delta
        self.executed = executed
        self.allocated = allocated
        super().__init__(
            f"Budget {budget_id} cannot absorb {delta}: "
            f"executed {executed} of allocated {allocated}"
        )


class NegativeBalance(DomainError):
    """
    Raised when a delta would push executed_amount below zero

    Unreachable in correct operation; points to an out-of-band mutation.
    """

    kind = ErrorKind.NEGATIVE_BALANCE

    def __init__(self, budget_id: str, delta: str, executed: str) -> None:
        self.budget_id = budget_id
        self.delta = delta
        self.executed = executed
        super().__init__(
            f"Budget {budget_id} executed amount {executed} cannot absorb {delta}"
        )


class AllocationBelowExecuted(DomainError):
    """Raised when a budget edit would shrink allocation below executed amount"""

    kind = ErrorKind.ALLOCATION_BELOW_EXECUTED

    def __init__(self, budget_id: str, new_allocation: str, executed: str) -> None:
        self.budget_id = budget_id
        self.new_allocation = new_allocation
        self.executed = executed
        super().__init__(
            f"Budget {budget_id} allocation {new_allocation} is below "
            f"executed amount {executed}"
        )


class InvalidOrderTransition(DomainError):
    """Raised when an order state change is not allowed by the lifecycle"""

    kind = ErrorKind.INVALID_ORDER_TRANSITION

    def __init__(self, order_id: str, from_state: str, to_state: str) -> None:
        self.order_id = order_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Order {order_id} cannot move from {from_state} to {to_state}"
        )


class MissingInvoiceNumber(DomainError):
    """Raised when an order is invoiced without an invoice number"""

    kind = ErrorKind.MISSING_INVOICE_NUMBER

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} requires an invoice number")


class InvoicedOrderLocked(DomainError):
    """Raised when quantity or unit cost of an invoiced order is edited"""

    kind = ErrorKind.INVOICED_ORDER_LOCKED

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} is invoiced - quantity and unit cost are locked"
        )


class Unauthorized(DomainError):
    """
    Raised when the authorization gate denies an operation

    The message is deliberately generic: it never says which rule failed.
    """

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__("Access denied")


class InvalidCommandInput(LedgerError):
    """
    Raised when a command field fails validation before any domain rule runs
    """

    def __init__(self, command: str, field: str, reason: str) -> None:
        self.command = command
        self.field = field
        self.reason = reason
        super().__init__(f"{command}: invalid {field} ({reason})")


class BudgetNotFound(LedgerError):
    """Raised when budget does not exist"""

    def __init__(self, budget_id: str) -> None:
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} not found")


class OrderNotFound(LedgerError):
    """Raised when service order does not exist"""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Service order {order_id} not found")
