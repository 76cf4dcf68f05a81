"""
Commission Handlers - Command→Event transformation for the commission feed
"""

from broker_ledger.budget.ledger_math import (
    commission_from_premium,
    to_fraction,
    to_non_negative_money,
)
from broker_ledger.commissions.commands import RecordCommission
from broker_ledger.commissions.events import CommissionRecorded
from broker_ledger.kernel.events import Event, create_event
from broker_ledger.kernel.ids import generate_id
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.time import TimeProvider


class CommissionCommandHandlers:
    """Command handlers for the commission feed"""

    def __init__(self, time_provider: TimeProvider, policy: LedgerPolicy) -> None:
        self.time_provider = time_provider
        self.policy = policy

    def handle_record_commission(
        self,
        command: RecordCommission,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        """
        Handle RecordCommission command

        Raises:
            InvalidQuantityOrCost: If premium or commission amount is negative
            InvalidFraction: If the commission rate is outside [0, 1]
        """
        now = self.time_provider.now()

        premium = to_non_negative_money(command.premium_amount, "premium_amount", self.policy)
        rate = to_fraction(command.commission_rate)

        if command.commission_amount is None:
            amount = commission_from_premium(premium, rate, self.policy)
        else:
            amount = to_non_negative_money(
                command.commission_amount, "commission_amount", self.policy
            )

        commission_id = generate_id()
        event_payload = CommissionRecorded(
            commission_id=commission_id,
            client_id=command.client_id,
            arl_id=command.arl_id,
            commission_date=command.commission_date,
            premium_amount=premium,
            commission_rate=rate,
            commission_amount=amount,
            amount_derived=command.commission_amount is None,
            recorded_at=now,
            recorded_by=actor_id,
        ).model_dump(mode="json")

        event = create_event(
            event_id=generate_id(),
            stream_id=commission_id,
            stream_type="commission",
            event_type="CommissionRecorded",
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=event_payload,
            version=1,
        )

        return [event]
