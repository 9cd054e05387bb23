"""
Ledger exceptions
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base class for ledger errors"""

    pass


class LedgerValidationError(LedgerError):
    """Input rejected before anything was written"""

    pass


class UnbalancedEntryError(LedgerValidationError):
    """Debits and credits differ by more than the rounding tolerance"""

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Unbalanced entry: debit {total_debit} != credit {total_credit}"
        )


class UnknownAccountError(LedgerValidationError):
    """A line references an account that does not exist or is archived"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Unknown ledger account: {account_id}")


class AccountResolutionError(LedgerError):
    """An account vanished between validation and the balance update

    Raised from inside the posting transaction, which is rolled back.
    """

    def __init__(self, account_id: str, kind: str = "ledger"):
        self.account_id = account_id
        self.kind = kind
        super().__init__(f"Could not resolve {kind} account {account_id} during posting")


class EntryNotFoundError(LedgerError):
    """Ledger entry id does not exist"""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


class FinancialAccountNotFoundError(LedgerError):
    """External financial account id does not exist"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Financial account not found: {account_id}")


class RecordNotFoundError(LedgerError):
    """Expense/income record id does not exist"""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Source record not found: {record_id}")
