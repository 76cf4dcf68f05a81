"""Commission Events"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class CommissionRecorded(BaseModel):
    """
    A commission entered the ledger

    amount_derived tells whether commission_amount was computed from the
    premium or entered as-is.
    """

    commission_id: str
    client_id: str
    arl_id: str
    commission_date: date
    premium_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    amount_derived: bool
    recorded_at: datetime
    recorded_by: str | None


COMMISSION_EVENT_TYPES = {
    "CommissionRecorded": CommissionRecorded,
}
