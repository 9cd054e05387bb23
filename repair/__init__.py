"""
Reconciliation and repair toolkit

Analysis and diagnostics are read-only. Recalculation and backfill write,
and accept dry_run=True to report what they would change.
"""

from repair.analysis import BalanceAnalyzer
from repair.backfill import LedgerBackfill
from repair.progress import BatchProgress, BatchResult
from repair.recalculation import BalanceRecalculator

__all__ = [
    "BalanceAnalyzer",
    "BalanceRecalculator",
    "LedgerBackfill",
    "BatchProgress",
    "BatchResult",
]
