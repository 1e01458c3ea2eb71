"""Balance sheet aggregation package."""

from src.ledger.aggregator import (
    LedgerAggregator,
    build_snapshot,
    compute_totals,
    derive_metrics,
    empty_snapshot,
    fold_transaction,
)
from src.ledger.service import BalanceSheetService

__all__ = [
    "BalanceSheetService",
    "LedgerAggregator",
    "build_snapshot",
    "compute_totals",
    "derive_metrics",
    "empty_snapshot",
    "fold_transaction",
]
