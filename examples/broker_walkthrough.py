"""
Broker Ledger walkthrough

Demonstrates:
- Recording commissions and deriving a budget from them
- Service orders consuming the budget, and a rejected overdraw
- Order lifecycle PENDIENTE -> EJECUTADO -> FACTURADO, then annulment
- Explicit re-derivation after new commissions arrive
- Client portal and program reports
"""

import tempfile
from datetime import date
from pathlib import Path

from broker_ledger import BudgetLedger
from broker_ledger.kernel.errors import BudgetExceeded


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        ledger = BudgetLedger(Path(tmpdir) / "walkthrough.db")

        print("\n=== Commissions ===\n")
        ledger.record_commission("client-001", "arl-sura", date(2025, 1, 31), "10000000", "0.10")
        print(f"Commission basis: {ledger.commission_basis('client-001')}")

        print("\n=== Budget ===\n")
        budget = ledger.create_budget("client-001", "0.60", ally_id="ally-007")
        print(f"Allocated: {budget.allocated_amount}")

        print("\n=== Orders ===\n")
        order = ledger.create_order(
            budget.budget_id, "OS-2025-001", quantity=10, unit_cost="50000", program="Capacitación"
        )
        print(f"Order {order.order_number}: {order.total}")
        print(f"Remaining: {ledger.get_budget(budget.budget_id).remaining_balance()}")

        try:
            ledger.create_order(budget.budget_id, "OS-2025-002", quantity=4, unit_cost="50000")
        except BudgetExceeded as e:
            print(f"Rejected: {e}")

        ledger.mark_executed(order.order_id)
        ledger.record_invoice(order.order_id, "FAC-1001", filing_date=date(2025, 2, 15))
        print(f"Order state: {ledger.get_order(order.order_id).state.value}")

        print("\n=== New commissions and explicit recompute ===\n")
        ledger.record_commission("client-001", "arl-sura", date(2025, 2, 28), "5000000", "0.10")
        print(f"Allocated (unchanged): {ledger.get_budget(budget.budget_id).allocated_amount}")
        recomputed = ledger.recompute_allocation(budget.budget_id, reason="February close")
        print(f"Allocated (recomputed): {recomputed.allocated_amount}")

        print("\n=== Annulment ===\n")
        ledger.annul_order(order.order_id, reason="Service not rendered")
        print(f"Executed after annulment: {ledger.get_budget(budget.budget_id).executed_amount}")

        print("\n=== Reports ===\n")
        summary = ledger.client_portal_summary("client-001")
        print(f"Portal: allocated {summary.allocated_total}, executed {summary.executed_total}")
        for program in ledger.program_breakdown():
            print(f"Program {program.program}: {program.executed_amount}/{program.projected_amount}")

        print("\n=== Audit trail ===\n")
        for event in ledger.get_history(budget.budget_id):
            print(f"v{event.version} {event.event_type}")


if __name__ == "__main__":
    main()
