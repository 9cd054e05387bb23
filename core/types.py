"""
Type definitions module

Core enums shared by the ledger, the record stores and the repair toolkit.
All enums inherit from str so they serialize as plain strings.
"""

from enum import Enum


class SourceKind(str, Enum):
    """Kind of business record that produces ledger entries"""

    EXPENSE = "expense"
    INCOME = "income"


class SourceType(str, Enum):
    """LedgerEntry.source_type values"""

    EXPENSE = "expense"
    INCOME = "income"
    ACCOUNT_OPENING = "account-opening"
    REVERSAL = "reversal"
    MANUAL = "manual"


class PaymentStatus(str, Enum):
    """Payment status of a source record

    Stored values are compared case-insensitively.
    """

    PAID = "paid"
    UNPAID = "unpaid"
    PENDING = "pending"
    OVERDUE = "overdue"


class DocumentType(str, Enum):
    """Document type of a source record"""

    STANDARD = "standard"
    PURCHASE = "purchase"  # expense only: posts to a cost-of-goods account
    CREDIT_NOTE = "credit-note"  # refund: debit/credit swapped


class FinancialAccountType(str, Enum):
    """External financial account type"""

    BANK = "bank"
    CASH = "cash"
    CARD = "card"
    OTHER = "other"
