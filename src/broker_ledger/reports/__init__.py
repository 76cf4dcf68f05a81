"""Reports Module - read-only rollups consumed by dashboards and the client portal"""

from broker_ledger.reports.aggregator import ClientDataAggregator, advisory_status

__all__ = ["ClientDataAggregator", "advisory_status"]
