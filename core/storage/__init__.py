"""
Storage module

Record stores of the business data the ledger posts from, and the settings
store holding the category -> account mappings.
"""

from core.storage.financial_account_store import FinancialAccountStore
from core.storage.record_store import SourceRecordStore
from core.storage.settings_store import (
    CategoryMappingRepository,
    LedgerSettingsStore,
    SettingsCategoryMappingRepository,
)

__all__ = [
    "FinancialAccountStore",
    "SourceRecordStore",
    "LedgerSettingsStore",
    "CategoryMappingRepository",
    "SettingsCategoryMappingRepository",
]
