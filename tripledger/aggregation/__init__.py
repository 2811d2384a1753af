"""Income/expense aggregation."""

from tripledger.aggregation.totals import balance_state, compute_totals

__all__ = ["balance_state", "compute_totals"]
