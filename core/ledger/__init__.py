"""
Double-entry ledger

Chart of accounts, entry engine, reversal engine and the binding layer that
posts expenses, income and account openings.

This package only re-exports its leaf modules (types and errors); import
the components from their modules:

```python
from core.ledger.context import CompanyLedger

ledger = await CompanyLedger.open(db, "acme", "EUR")

# expense posted to the ledger
result = await ledger.binding.create_expense(
    {"amount": "50", "currency": "EUR", "category": "Travel",
     "payment_status": "paid", "financial_account_id": bank_id}
)

# reversal
await ledger.reversal.reverse_entry(result.ledger_entry_id, actor="alice")

# trial balance
trial_balance = await ledger.chart.get_trial_balance()
```
"""

from core.ledger.errors import (
    AccountResolutionError,
    EntryNotFoundError,
    FinancialAccountNotFoundError,
    LedgerError,
    LedgerValidationError,
    RecordNotFoundError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from core.ledger.types import (
    SYSTEM_ACCOUNTS,
    AccountType,
    CategoryKind,
    NormalBalance,
    SystemAccounts,
)

__all__ = [
    # Enum
    "AccountType",
    "NormalBalance",
    "CategoryKind",
    # constants
    "SystemAccounts",
    "SYSTEM_ACCOUNTS",
    # errors
    "LedgerError",
    "LedgerValidationError",
    "UnbalancedEntryError",
    "UnknownAccountError",
    "AccountResolutionError",
    "EntryNotFoundError",
    "FinancialAccountNotFoundError",
    "RecordNotFoundError",
]
