"""Commission Commands - data entry of commission facts"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class RecordCommission(BaseModel):
    """
    Record a commission for a client

    When commission_amount is omitted it is derived as
    premium_amount × commission_rate.
    """

    client_id: str = Field(..., min_length=1)
    arl_id: str = Field(..., min_length=1)
    commission_date: date
    premium_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal | None = None


COMMISSION_COMMAND_TYPES = {
    "RecordCommission": RecordCommission,
}
