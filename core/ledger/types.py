"""
Double-entry type definitions

Account types, normal balances, code bands and the seeded system accounts.
"""

from dataclasses import dataclass
from enum import Enum


class AccountType(str, Enum):
    """Ledger account type

    Inherits from str so values serialize as plain strings.
    """

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST_OF_GOODS = "cost-of-goods"


class NormalBalance(str, Enum):
    """Side on which an account type's balance increases"""

    DEBIT = "debit"
    CREDIT = "credit"


class CategoryKind(str, Enum):
    """Kind of auto-provisioned category account"""

    EXPENSE = "expense"
    INCOME = "income"
    COST_OF_GOODS = "cost-of-goods"


NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.COST_OF_GOODS: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


# Inclusive numeric code band reserved per account type
ACCOUNT_CODE_BANDS: dict[AccountType, tuple[int, int]] = {
    AccountType.ASSET: (1000, 1999),
    AccountType.LIABILITY: (2000, 2999),
    AccountType.EQUITY: (3000, 3999),
    AccountType.REVENUE: (4000, 4999),
    AccountType.COST_OF_GOODS: (5000, 5099),
    AccountType.EXPENSE: (5100, 5999),
}


# Account type provisioned for each category kind
CATEGORY_ACCOUNT_TYPES: dict[CategoryKind, AccountType] = {
    CategoryKind.EXPENSE: AccountType.EXPENSE,
    CategoryKind.INCOME: AccountType.REVENUE,
    CategoryKind.COST_OF_GOODS: AccountType.COST_OF_GOODS,
}


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Normal balance derived from the account type"""
    return NORMAL_BALANCE_BY_TYPE[AccountType(account_type)]


class SystemAccounts:
    """Fixed ids of the seeded system accounts (per company)"""

    CASH = "cash"
    ACCOUNTS_RECEIVABLE = "accounts-receivable"
    ACCOUNTS_PAYABLE = "accounts-payable"
    OPENING_BALANCE_EQUITY = "opening-balance-equity"
    REVENUE = "revenue"
    OPERATING_EXPENSE = "operating-expense"
    COST_OF_GOODS = "cost-of-goods"


@dataclass(frozen=True)
class SystemAccountSpec:
    """Definition of one seeded system account"""

    account_id: str
    code: str
    name: str
    account_type: AccountType


SYSTEM_ACCOUNTS: list[SystemAccountSpec] = [
    SystemAccountSpec(SystemAccounts.CASH, "1000", "Cash", AccountType.ASSET),
    SystemAccountSpec(SystemAccounts.ACCOUNTS_RECEIVABLE, "1100", "Accounts Receivable", AccountType.ASSET),
    SystemAccountSpec(SystemAccounts.ACCOUNTS_PAYABLE, "2000", "Accounts Payable", AccountType.LIABILITY),
    SystemAccountSpec(SystemAccounts.OPENING_BALANCE_EQUITY, "3000", "Opening Balance Equity", AccountType.EQUITY),
    SystemAccountSpec(SystemAccounts.REVENUE, "4000", "Revenue", AccountType.REVENUE),
    SystemAccountSpec(SystemAccounts.COST_OF_GOODS, "5000", "Cost of Goods Sold", AccountType.COST_OF_GOODS),
    SystemAccountSpec(SystemAccounts.OPERATING_EXPENSE, "5100", "Operating Expenses", AccountType.EXPENSE),
]


# Default account used when a category is blank
DEFAULT_CATEGORY_ACCOUNTS: dict[CategoryKind, str] = {
    CategoryKind.EXPENSE: SystemAccounts.OPERATING_EXPENSE,
    CategoryKind.INCOME: SystemAccounts.REVENUE,
    CategoryKind.COST_OF_GOODS: SystemAccounts.COST_OF_GOODS,
}


# Settings record holding the category -> account maps
LEDGER_MAPPINGS_KEY = "ledgerMappings"

MAPPING_FIELDS: dict[CategoryKind, str] = {
    CategoryKind.EXPENSE: "expenseCategories",
    CategoryKind.INCOME: "incomeCategories",
    CategoryKind.COST_OF_GOODS: "costOfGoodsCategories",
}
