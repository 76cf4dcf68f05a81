"""
Commission Models - immutable income facts per client

Commissions are earned on premiums emitted through an ARL. The ledger only
records and sums them; a recorded commission is never edited.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Commission(BaseModel):
    """
    Commission earned for a client

    Attributes:
        commission_id: Unique identifier
        client_id: Client the premium was emitted for
        arl_id: Insurance-risk entity the commission is earned against
        commission_date: Date of the commission
        premium_amount: Emitted premium
        commission_rate: Fraction of the premium paid as commission
        commission_amount: Commission earned (premium × rate unless given)
        recorded_at: When the fact entered the ledger
    """

    commission_id: str
    client_id: str
    arl_id: str
    commission_date: date
    premium_amount: Decimal = Field(ge=0)
    commission_rate: Decimal = Field(ge=0, le=1)
    commission_amount: Decimal = Field(ge=0)
    recorded_at: datetime

    model_config = {"frozen": True}
