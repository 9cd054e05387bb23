"""
Company ledger wiring

Builds the stores and engines of one company on a shared connection.
Used by the web dependencies, the CLI scripts and the repair toolkit.
"""

import logging

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.ledger.accounts import ChartOfAccounts
from core.ledger.binding import SourceBinding
from core.ledger.reversal import ReversalEngine
from core.ledger.store import LedgerStore
from core.storage.financial_account_store import FinancialAccountStore
from core.storage.record_store import SourceRecordStore
from core.storage.settings_store import LedgerSettingsStore, SettingsCategoryMappingRepository

logger = logging.getLogger(__name__)


class CompanyLedger:
    """All ledger components of one company

    Args:
        db: SQLiteAdapter instance
        company_id: owning company
        currency: default currency for provisioned accounts

    Example:
    ```python
    ledger = await CompanyLedger.open(db, "acme", "EUR")
    result = await ledger.binding.create_expense({"amount": "50", "currency": "EUR"})
    ```
    """

    def __init__(self, db: SQLiteAdapter, company_id: str, currency: str = Defaults.CURRENCY):
        self.db = db
        self.company_id = company_id
        self.currency = currency

        self.settings = LedgerSettingsStore(db, company_id)
        self.records = SourceRecordStore(db, company_id)
        self.financial_accounts = FinancialAccountStore(db, company_id)

        self.chart = ChartOfAccounts(
            db,
            company_id,
            currency=currency,
            mappings=SettingsCategoryMappingRepository(self.settings),
            financial_accounts=self.financial_accounts,
        )
        self.ledger = LedgerStore(db, company_id, self.chart)
        self.reversal = ReversalEngine(self.ledger)
        self.binding = SourceBinding(
            records=self.records,
            financial_accounts=self.financial_accounts,
            chart=self.chart,
            ledger=self.ledger,
            reversal=self.reversal,
        )

    @classmethod
    async def open(
        cls,
        db: SQLiteAdapter,
        company_id: str,
        currency: str = Defaults.CURRENCY,
    ) -> "CompanyLedger":
        """Build the components and seed the system accounts"""
        company = cls(db, company_id, currency)
        await company.chart.ensure_system_accounts()
        return company
