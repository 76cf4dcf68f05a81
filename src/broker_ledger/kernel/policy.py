"""
Ledger Policy - tunable parameters of the budget ledger

One pydantic model holds every knob the core reads: money precision, the
modules every signed-in user may open, the bootstrap window and the rule for
invoiced orders. Handlers and the access gate receive the policy explicitly.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class LedgerPolicy(BaseModel):
    """
    Ledger configuration parameters

    Defaults match the brokerage's operating practice: two decimal places,
    home/help/settings open to everybody, a five-minute bootstrap window and
    invoiced orders locked against financial edits.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    money_decimal_places: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Digits kept after the decimal point for money values",
    )

    baseline_modules: frozenset[str] = Field(
        default=frozenset({"home", "help", "settings"}),
        description="Modules every active user may open regardless of authorization",
    )

    bootstrap_window_seconds: int = Field(
        default=300,
        ge=0,
        le=3600,
        description="How long a session without a loaded profile is let through",
    )

    lock_invoiced_financials: bool = Field(
        default=True,
        description="Reject quantity/unit cost edits on FACTURADO orders",
    )

    max_conflict_retries: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Attempts for a write that loses an optimistic-locking race",
    )

    max_conflict_wait_ms: int = Field(
        default=200,
        ge=1,
        le=5000,
        description="Upper bound of the jittered wait between conflict retries",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "description": "Parameters governing money precision and access rules"
        },
    }

    def money_quantum(self) -> Decimal:
        """Smallest representable money step, e.g. Decimal('0.01')"""
        return Decimal(1).scaleb(-self.money_decimal_places)


default_ledger_policy = LedgerPolicy()
