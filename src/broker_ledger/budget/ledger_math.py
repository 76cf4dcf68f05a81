"""
Ledger Math - pure money arithmetic for budgets and orders

Every amount in the ledger is a Decimal quantized to the currency minor unit
with round-half-up. Floats are accepted at the boundary only through their
shortest repr, so 0.1 becomes Decimal("0.1") and not its binary expansion.

None of these functions hold state; called twice with the same inputs they
return the same output.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from broker_ledger.kernel.errors import InvalidFraction, InvalidQuantityOrCost
from broker_ledger.kernel.policy import LedgerPolicy, default_ledger_policy

if TYPE_CHECKING:
    from broker_ledger.budget.models import Budget

RATIO_QUANTUM = Decimal("0.0001")


def _to_decimal(value: Any, field: str) -> Decimal:
    """Convert a numeric input to Decimal or raise InvalidQuantityOrCost"""
    if isinstance(value, bool):
        raise InvalidQuantityOrCost(field, str(value))

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation as e:
            raise InvalidQuantityOrCost(field, value) from e
    else:
        raise InvalidQuantityOrCost(field, str(value))

    if not number.is_finite():
        raise InvalidQuantityOrCost(field, str(value))
    return number


def quantize_money(
    value: Decimal, policy: LedgerPolicy = default_ledger_policy
) -> Decimal:
    """Round an exact Decimal to the currency minor unit (round-half-up)"""
    return value.quantize(policy.money_quantum(), rounding=ROUND_HALF_UP)


def to_money(
    value: Any,
    field: str = "amount",
    policy: LedgerPolicy = default_ledger_policy,
) -> Decimal:
    """
    Parse and quantize a money value

    Sign is preserved: deltas may be negative.

    Raises:
        InvalidQuantityOrCost: If value is not a finite number
    """
    return quantize_money(_to_decimal(value, field), policy)


def to_non_negative_money(
    value: Any,
    field: str = "amount",
    policy: LedgerPolicy = default_ledger_policy,
) -> Decimal:
    """Like to_money but rejects negative values"""
    number = _to_decimal(value, field)
    if number < 0:
        raise InvalidQuantityOrCost(field, str(value))
    return quantize_money(number, policy)


def to_quantity(value: Any, field: str = "quantity") -> Decimal:
    """
    Parse a non-negative quantity (not quantized: quantities are not money)

    Raises:
        InvalidQuantityOrCost: If value is negative or not numeric
    """
    number = _to_decimal(value, field)
    if number < 0:
        raise InvalidQuantityOrCost(field, str(value))
    return number


def to_fraction(value: Any) -> Decimal:
    """
    Parse a fraction in [0, 1]

    Raises:
        InvalidFraction: If value is not numeric or lies outside [0, 1]
    """
    try:
        fraction = _to_decimal(value, "investment_percentage")
    except InvalidQuantityOrCost as e:
        raise InvalidFraction(str(value)) from e

    if fraction < 0 or fraction > 1:
        raise InvalidFraction(str(value))
    return fraction


def derive_allocated_amount(
    commission_basis: Any,
    investment_percentage: Any,
    policy: LedgerPolicy = default_ledger_policy,
) -> Decimal:
    """
    Allocated amount = commission basis × investment percentage

    The product is computed exactly and rounded once.

    Args:
        commission_basis: Sum of the client's commissions (non-negative)
        investment_percentage: Fraction in [0, 1]
        policy: Supplies the money precision

    Returns:
        Allocated amount quantized to the minor unit

    Raises:
        InvalidFraction: If the percentage is outside [0, 1]
        InvalidQuantityOrCost: If the basis is negative or not numeric
    """
    fraction = to_fraction(investment_percentage)
    basis = _to_decimal(commission_basis, "commission_basis")
    if basis < 0:
        raise InvalidQuantityOrCost("commission_basis", str(commission_basis))
    return quantize_money(basis * fraction, policy)


def compute_order_total(
    quantity: Any,
    unit_cost: Any,
    policy: LedgerPolicy = default_ledger_policy,
) -> Decimal:
    """
    Order total = quantity × unit cost

    Raises:
        InvalidQuantityOrCost: If either operand is negative or not numeric
    """
    q = to_quantity(quantity, "quantity")
    cost = to_quantity(unit_cost, "unit_cost")
    return quantize_money(q * cost, policy)


def remaining_balance(budget: "Budget") -> Decimal:
    """Allocated minus executed for a budget"""
    return budget.allocated_amount - budget.executed_amount


def commission_from_premium(
    premium: Any,
    commission_rate: Any,
    policy: LedgerPolicy = default_ledger_policy,
) -> Decimal:
    """
    Commission earned on an emitted premium

    Raises:
        InvalidQuantityOrCost: If the premium is negative or not numeric
        InvalidFraction: If the rate is outside [0, 1]
    """
    amount = _to_decimal(premium, "premium_amount")
    if amount < 0:
        raise InvalidQuantityOrCost("premium_amount", str(premium))
    return quantize_money(amount * to_fraction(commission_rate), policy)


def execution_ratio(executed: Decimal, allocated: Decimal) -> Decimal:
    """
    Share of the allocation already consumed, to four decimal places

    A zero allocation has nothing to consume and reports 0.
    """
    if allocated == 0:
        return Decimal("0").quantize(RATIO_QUANTUM)
    return (executed / allocated).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)
