"""
Tests for the client data aggregator

Data is written through the ledger so the rollups run over real projections.
"""

from datetime import date
from decimal import Decimal

import pytest

from broker_ledger.budget.models import BudgetStatus
from broker_ledger.kernel.errors import BudgetNotFound
from broker_ledger.ledger import BudgetLedger
from broker_ledger.reports.aggregator import UNCATEGORIZED_PROGRAM, advisory_status


@pytest.fixture
def populated(ledger: BudgetLedger) -> dict:
    ledger.record_commission("client-1", "arl-1", date(2025, 1, 1), "1000000", "0.10")
    ledger.record_commission("client-1", "arl-2", date(2025, 2, 1), "500000", "0.20")
    budget = ledger.create_budget("client-1", "0.5")  # 200000 basis -> 100000

    pending = ledger.create_order(budget.budget_id, "OS-1", 2, "10000", program="Capacitación")
    executed = ledger.create_order(budget.budget_id, "OS-2", 3, "10000", program="Capacitación")
    ledger.mark_executed(executed.order_id)
    untagged = ledger.create_order(budget.budget_id, "OS-3", 1, "5000")
    annulled = ledger.create_order(budget.budget_id, "OS-4", 1, "1000", program="Pausas")
    ledger.annul_order(annulled.order_id)

    return {
        "budget": budget,
        "pending": pending,
        "executed": executed,
        "untagged": untagged,
    }


@pytest.mark.parametrize(
    "executed, allocated, expected",
    [
        ("0", "100", BudgetStatus.ACTIVE),
        ("50", "100", BudgetStatus.IN_EXECUTION),
        ("100", "100", BudgetStatus.COMPLETED),
        ("0", "0", BudgetStatus.ACTIVE),
    ],
)
def test_advisory_status(executed: str, allocated: str, expected: BudgetStatus) -> None:
    assert advisory_status(Decimal(executed), Decimal(allocated)) == expected


def test_client_commission_totals(ledger: BudgetLedger, populated: dict) -> None:
    totals = ledger.client_commission_totals("client-1")
    assert totals.commission_total == Decimal("200000.00")
    assert totals.premium_total == Decimal("1500000.00")
    assert totals.commission_count == 2


def test_budget_execution(ledger: BudgetLedger, populated: dict) -> None:
    execution = ledger.budget_execution(populated["budget"].budget_id)

    assert execution.allocated_amount == Decimal("100000.00")
    assert execution.executed_amount == Decimal("55000.00")
    assert execution.remaining_balance == Decimal("45000.00")
    assert execution.execution_ratio == Decimal("0.55")
    assert execution.status == BudgetStatus.PENDING
    assert execution.advisory_status == BudgetStatus.IN_EXECUTION
    assert execution.order_count == 4


def test_budget_execution_unknown_budget(ledger: BudgetLedger) -> None:
    with pytest.raises(BudgetNotFound):
        ledger.budget_execution("missing")


def test_client_portal_summary(ledger: BudgetLedger, populated: dict) -> None:
    summary = ledger.client_portal_summary("client-1")

    assert summary.allocated_total == Decimal("100000.00")
    assert summary.executed_total == Decimal("55000.00")
    assert summary.budget_count == 1
    assert summary.active_orders == 3


def test_program_breakdown(ledger: BudgetLedger, populated: dict) -> None:
    programs = {p.program: p for p in ledger.program_breakdown()}

    assert set(programs) == {"Capacitación", UNCATEGORIZED_PROGRAM}
    training = programs["Capacitación"]
    assert training.projected_amount == Decimal("50000.00")
    assert training.executed_amount == Decimal("30000.00")
    assert training.execution_ratio == Decimal("0.6")
    assert programs[UNCATEGORIZED_PROGRAM].executed_amount == Decimal("0")


def test_portfolio_execution(ledger: BudgetLedger, populated: dict) -> None:
    ledger.create_budget("client-2", "1", commission_basis="45000")

    portfolio = ledger.portfolio_execution()

    assert portfolio.allocated_total == Decimal("145000.00")
    assert portfolio.executed_total == Decimal("55000.00")
    assert portfolio.remaining_total == Decimal("90000.00")
    assert portfolio.budget_count == 2
