"""
Utility package

Money rounding and date normalisation shared by the ledger and the stores.
"""

from core.utils.dates import now_iso, now_utc, to_date_str, today_iso
from core.utils.money import CENT, ZERO, money_str, to_money

__all__ = [
    "CENT",
    "ZERO",
    "money_str",
    "to_money",
    "now_iso",
    "now_utc",
    "to_date_str",
    "today_iso",
]
