"""
Commission Projections

CommissionLedger: every recorded commission, with per-client sums used as
the default basis of new budgets and by the reports.
"""

from decimal import Decimal

from broker_ledger.kernel.events import Event


class CommissionLedger:
    """
    Commission projection

    Built from events: CommissionRecorded

    Query methods: get, list_by_client, list_all, commission_total,
                   premium_total
    """

    def __init__(self) -> None:
        self.commissions: dict[str, dict] = {}

    def apply_event(self, event: Event) -> None:
        """Apply an event to update the projection"""
        if event.event_type == "CommissionRecorded":
            payload = event.payload
            self.commissions[payload["commission_id"]] = {
                "commission_id": payload["commission_id"],
                "client_id": payload["client_id"],
                "arl_id": payload["arl_id"],
                "commission_date": payload["commission_date"],
                "premium_amount": payload["premium_amount"],
                "commission_rate": payload["commission_rate"],
                "commission_amount": payload["commission_amount"],
                "recorded_at": payload["recorded_at"],
            }

    def get(self, commission_id: str) -> dict | None:
        return self.commissions.get(commission_id)

    def list_by_client(self, client_id: str) -> list[dict]:
        """List a client's commissions, oldest commission date first"""
        return sorted(
            (c for c in self.commissions.values() if c["client_id"] == client_id),
            key=lambda c: c["commission_date"],
        )

    def list_all(self) -> list[dict]:
        return list(self.commissions.values())

    def commission_total(self, client_id: str) -> Decimal:
        """Sum of commission amounts recorded for a client"""
        return sum(
            (Decimal(c["commission_amount"]) for c in self.list_by_client(client_id)),
            Decimal("0"),
        )

    def premium_total(self, client_id: str) -> Decimal:
        """Sum of emitted premiums recorded for a client"""
        return sum(
            (Decimal(c["premium_amount"]) for c in self.list_by_client(client_id)),
            Decimal("0"),
        )
