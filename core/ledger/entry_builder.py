"""
Entry builder

Turns business records (expenses, income, account openings) into journal
entries. The line layout is decided by pure functions; the builder only
resolves the accounts those lines point at.

Posting rules:
    expense   Dr category account      / Cr external mirror (paid + linked)
                                        / Cr accounts payable (otherwise)
    income    Dr external mirror (linked) or accounts receivable
                                        / Cr revenue category account
    opening   B > 0: Dr mirror / Cr opening balance equity
              B < 0: Dr opening balance equity / Cr mirror

Credit notes swap the debit and credit side of the expense/income layout.
Purchase documents post the expense to a cost-of-goods category account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from core.constants import Tolerances
from core.ledger.types import CategoryKind, SystemAccounts
from core.types import DocumentType, PaymentStatus, SourceKind, SourceType
from core.utils.money import ZERO, to_money

if TYPE_CHECKING:
    from core.ledger.accounts import ChartOfAccounts

logger = logging.getLogger(__name__)


# Source record fields whose change requires the entry to be rebuilt
LEDGER_RELEVANT_FIELDS: frozenset[str] = frozenset(
    {
        "amount",
        "currency",
        "financial_account_id",
        "category",
        "payment_status",
        "paid_date",
        "record_date",
        "document_type",
    }
)


@dataclass
class JournalLine:
    """One line of a journal entry

    When `external_account_id` is set the line also moves that financial
    account's current_balance by (debit - credit).
    """

    account_id: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str | None = None
    external_account_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def swapped(self) -> JournalLine:
        """Same line with debit and credit exchanged"""
        return JournalLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            currency=self.currency,
            external_account_id=self.external_account_id,
            metadata=dict(self.metadata),
        )


@dataclass
class JournalEntry:
    """Journal entry ready to be posted

    Debit total equals credit total (within the rounding tolerance).
    """

    entry_date: str
    description: str
    lines: list[JournalLine]
    source_type: str = SourceType.MANUAL.value
    source_id: str | None = None
    currency: str | None = None

    # reversal linkage
    is_reversal: bool = False
    reverses_entry_id: str | None = None

    created_by: str | None = None
    entry_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def total_debit(self) -> Decimal:
        return sum((to_money(line.debit) for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((to_money(line.credit) for line in self.lines), ZERO)

    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= Tolerances.ENTRY_BALANCE


# -----------------------------------------------------------------------------
# record predicates
# -----------------------------------------------------------------------------


def is_paid(record: dict[str, Any]) -> bool:
    """payment_status == paid, case-insensitively"""
    status = record.get("payment_status") or ""
    return str(status).strip().lower() == PaymentStatus.PAID.value


def is_credit_note(record: dict[str, Any]) -> bool:
    return (record.get("document_type") or DocumentType.STANDARD.value) == DocumentType.CREDIT_NOTE.value


def is_settled(record: dict[str, Any]) -> bool:
    """Whether the record has moved money on its financial account

    Expenses settle when paid and linked; income settles when linked.
    """
    if not record.get("financial_account_id"):
        return False
    if record.get("kind") == SourceKind.EXPENSE.value:
        return is_paid(record)
    return True


def settled_delta(record: dict[str, Any]) -> Decimal:
    """Signed effect of a settled record on its financial account"""
    if not is_settled(record):
        return ZERO

    amount = to_money(record.get("amount"))
    sign = -1 if record.get("kind") == SourceKind.EXPENSE.value else 1
    if is_credit_note(record):
        sign = -sign
    return amount * sign


def category_kind_for(record: dict[str, Any]) -> CategoryKind:
    if record.get("kind") == SourceKind.INCOME.value:
        return CategoryKind.INCOME
    if record.get("document_type") == DocumentType.PURCHASE.value:
        return CategoryKind.COST_OF_GOODS
    return CategoryKind.EXPENSE


def record_description(record: dict[str, Any]) -> str:
    """Entry description for a source record"""
    parts = [record.get("description"), record.get("counterparty"), record.get("category")]
    label = next((str(part).strip() for part in parts if part and str(part).strip()), "")
    kind = "Income" if record.get("kind") == SourceKind.INCOME.value else "Expense"
    if is_credit_note(record):
        kind = f"{kind} credit note"
    return f"{kind}: {label}" if label else kind


# -----------------------------------------------------------------------------
# pure line layouts
# -----------------------------------------------------------------------------


def two_line_layout(
    debit_account_id: str,
    credit_account_id: str,
    amount: Decimal,
    currency: str | None,
    debit_external_id: str | None = None,
    credit_external_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> list[JournalLine]:
    """Debit one account and credit another for the same amount"""
    amount = to_money(amount)
    meta = dict(metadata or {})
    return [
        JournalLine(
            account_id=debit_account_id,
            debit=amount,
            currency=currency,
            external_account_id=debit_external_id,
            metadata=dict(meta),
        ),
        JournalLine(
            account_id=credit_account_id,
            credit=amount,
            currency=currency,
            external_account_id=credit_external_id,
            metadata=dict(meta),
        ),
    ]


def expense_lines(
    record: dict[str, Any],
    category_account_id: str,
    mirror_account_id: str | None,
) -> list[JournalLine]:
    """Dr category / Cr mirror (paid + linked) or accounts payable"""
    metadata = {
        "vendor": record.get("counterparty"),
        "category": record.get("category"),
    }
    external_id = record.get("financial_account_id")

    if is_paid(record) and external_id and mirror_account_id:
        lines = two_line_layout(
            category_account_id,
            mirror_account_id,
            record["amount"],
            record.get("currency"),
            credit_external_id=external_id,
            metadata=metadata,
        )
    else:
        lines = two_line_layout(
            category_account_id,
            SystemAccounts.ACCOUNTS_PAYABLE,
            record["amount"],
            record.get("currency"),
            metadata=metadata,
        )

    if is_credit_note(record):
        lines = [line.swapped() for line in lines]
    return lines


def income_lines(
    record: dict[str, Any],
    category_account_id: str,
    mirror_account_id: str | None,
) -> list[JournalLine]:
    """Dr mirror (linked) or accounts receivable / Cr revenue category"""
    metadata = {
        "customer": record.get("counterparty"),
        "category": record.get("category"),
    }
    external_id = record.get("financial_account_id")

    if external_id and mirror_account_id:
        lines = two_line_layout(
            mirror_account_id,
            category_account_id,
            record["amount"],
            record.get("currency"),
            debit_external_id=external_id,
            metadata=metadata,
        )
    else:
        lines = two_line_layout(
            SystemAccounts.ACCOUNTS_RECEIVABLE,
            category_account_id,
            record["amount"],
            record.get("currency"),
            metadata=metadata,
        )

    if is_credit_note(record):
        lines = [line.swapped() for line in lines]
    return lines


def opening_lines(
    external_account_id: str,
    mirror_account_id: str,
    initial_balance: Decimal,
    currency: str | None,
) -> list[JournalLine]:
    """Mirror vs opening balance equity, signed by the initial balance"""
    amount = to_money(initial_balance)
    metadata = {"opening": True}

    if amount >= 0:
        return two_line_layout(
            mirror_account_id,
            SystemAccounts.OPENING_BALANCE_EQUITY,
            amount,
            currency,
            debit_external_id=external_account_id,
            metadata=metadata,
        )
    return two_line_layout(
        SystemAccounts.OPENING_BALANCE_EQUITY,
        mirror_account_id,
        -amount,
        currency,
        credit_external_id=external_account_id,
        metadata=metadata,
    )


class SourceEntryBuilder:
    """Builds journal entries for source records

    Category accounts and external mirrors are provisioned through the
    chart of accounts on first use.

    Args:
        chart: ChartOfAccounts of the record's company
    """

    def __init__(self, chart: ChartOfAccounts):
        self.chart = chart

    async def from_record(self, record: dict[str, Any], actor: str | None = None) -> JournalEntry:
        """Entry for an expense or income record"""
        kind = record.get("kind")
        if kind not in (SourceKind.EXPENSE.value, SourceKind.INCOME.value):
            raise ValueError(f"Unsupported source record kind: {kind}")

        category_account_id = await self.chart.get_or_create_category_account(
            category_kind_for(record),
            record.get("category"),
            record.get("currency"),
        )

        mirror_account_id = None
        external_id = record.get("financial_account_id")
        uses_mirror = external_id and (kind == SourceKind.INCOME.value or is_paid(record))
        if uses_mirror:
            mirror_account_id = await self.chart.get_or_create_external_account_mirror(external_id)

        if kind == SourceKind.EXPENSE.value:
            lines = expense_lines(record, category_account_id, mirror_account_id)
        else:
            lines = income_lines(record, category_account_id, mirror_account_id)

        return JournalEntry(
            entry_date=record.get("paid_date") or record["record_date"],
            description=record_description(record),
            lines=lines,
            source_type=kind,
            source_id=record["record_id"],
            currency=record.get("currency"),
            created_by=actor,
        )

    async def from_account_opening(
        self,
        account: dict[str, Any],
        actor: str | None = None,
    ) -> JournalEntry | None:
        """Opening entry for a financial account (None when the balance is 0)"""
        initial_balance = to_money(account.get("initial_balance"))
        if initial_balance == 0:
            return None

        mirror_account_id = await self.chart.get_or_create_external_account_mirror(account["account_id"])
        return JournalEntry(
            entry_date=str(account.get("created_at") or "")[:10] or None,
            description=f"Opening balance: {account['name']}",
            lines=opening_lines(
                account["account_id"],
                mirror_account_id,
                initial_balance,
                account.get("currency"),
            ),
            source_type=SourceType.ACCOUNT_OPENING.value,
            source_id=account["account_id"],
            currency=account.get("currency"),
            created_by=actor,
        )
