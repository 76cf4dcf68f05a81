"""
Tests for Ledger Math - money parsing, derivation and rounding
"""

from decimal import Decimal

import pytest

from broker_ledger.budget.ledger_math import (
    commission_from_premium,
    compute_order_total,
    derive_allocated_amount,
    execution_ratio,
    to_fraction,
    to_money,
    to_non_negative_money,
    to_quantity,
)
from broker_ledger.kernel.errors import InvalidFraction, InvalidQuantityOrCost
from broker_ledger.kernel.policy import LedgerPolicy


def test_derive_allocated_amount() -> None:
    assert derive_allocated_amount("1000000", "0.60") == Decimal("600000.00")


def test_derive_allocated_amount_rounds_half_up_once() -> None:
    # 333.335 exactly: rounded once, half up
    assert derive_allocated_amount("666.67", "0.5") == Decimal("333.34")


def test_float_inputs_use_shortest_repr() -> None:
    assert derive_allocated_amount(0.1, 0.3) == Decimal("0.03")
    assert to_money(0.1) == Decimal("0.10")


@pytest.mark.parametrize("fraction", ["-0.01", "1.01", "abc", True])
def test_fraction_outside_unit_interval_rejected(fraction) -> None:
    with pytest.raises(InvalidFraction):
        to_fraction(fraction)


@pytest.mark.parametrize("fraction", [0, 1, "0.5", Decimal("1.0")])
def test_fraction_bounds_accepted(fraction) -> None:
    assert Decimal("0") <= to_fraction(fraction) <= Decimal("1")


def test_negative_basis_rejected() -> None:
    with pytest.raises(InvalidQuantityOrCost) as exc_info:
        derive_allocated_amount("-1", "0.5")
    assert exc_info.value.field == "commission_basis"


def test_compute_order_total() -> None:
    assert compute_order_total(10, "50000") == Decimal("500000.00")
    assert compute_order_total("2.5", "0.333") == Decimal("0.83")


@pytest.mark.parametrize("quantity, unit_cost", [(-1, 10), (1, -10), ("x", 10), (1, "NaN")])
def test_compute_order_total_rejects_bad_operands(quantity, unit_cost) -> None:
    with pytest.raises(InvalidQuantityOrCost):
        compute_order_total(quantity, unit_cost)


def test_zero_quantity_is_allowed() -> None:
    assert compute_order_total(0, "1000") == Decimal("0.00")


def test_to_money_keeps_sign_and_non_negative_rejects_it() -> None:
    assert to_money("-10.005") == Decimal("-10.01")
    with pytest.raises(InvalidQuantityOrCost):
        to_non_negative_money("-0.01")


def test_to_quantity_is_not_quantized() -> None:
    assert to_quantity("1.2345") == Decimal("1.2345")


def test_money_precision_follows_policy() -> None:
    policy = LedgerPolicy(money_decimal_places=0)
    assert derive_allocated_amount("1001", "0.5", policy) == Decimal("501")


def test_commission_from_premium() -> None:
    assert commission_from_premium("1000000", "0.10") == Decimal("100000.00")


def test_execution_ratio() -> None:
    assert execution_ratio(Decimal("500000"), Decimal("600000")) == Decimal("0.8333")
    assert execution_ratio(Decimal("0"), Decimal("0")) == Decimal("0")
