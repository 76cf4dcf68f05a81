"""
Commissions Module - the commission feed budgets are derived from

Commissions are recorded once and never mutated; the ledger only sums them.
"""

from broker_ledger.commissions.models import Commission

__all__ = ["Commission"]
