"""
Ledger store (entry engine)

Validates and persists balanced journal entries. Posting one entry writes
the entry, its lines, the running totals of every touched ledger account and
the current_balance of every touched financial account in one transaction.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator

from core.constants import Defaults
from core.ledger.entry_builder import JournalEntry, JournalLine
from core.ledger.errors import (
    AccountResolutionError,
    LedgerValidationError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from core.ledger.types import NormalBalance
from core.types import SourceType
from core.utils.dates import now_iso, to_date_str
from core.utils.money import ZERO, money_str, to_money

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter
    from core.ledger.accounts import ChartOfAccounts

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = """
    entry_id, entry_date, description, total_debit, total_credit,
    source_id, source_type, currency, is_reversal, reverses_entry_id,
    reversed, reversal_entry_id, reversed_at, reversed_by, reversal_reason,
    created_by, created_at
"""


def entry_from_row(row: Any) -> dict[str, Any]:
    return {
        "entry_id": row["entry_id"],
        "entry_date": row["entry_date"],
        "description": row["description"],
        "total_debit": Decimal(row["total_debit"]),
        "total_credit": Decimal(row["total_credit"]),
        "source_id": row["source_id"],
        "source_type": row["source_type"],
        "currency": row["currency"],
        "is_reversal": bool(row["is_reversal"]),
        "reverses_entry_id": row["reverses_entry_id"],
        "reversed": bool(row["reversed"]),
        "reversal_entry_id": row["reversal_entry_id"],
        "reversed_at": row["reversed_at"],
        "reversed_by": row["reversed_by"],
        "reversal_reason": row["reversal_reason"],
        "created_by": row["created_by"],
        "created_at": row["created_at"],
        "lines": [],
    }


def line_from_row(row: Any) -> dict[str, Any]:
    return {
        "line_id": row["line_id"],
        "entry_id": row["entry_id"],
        "account_id": row["account_id"],
        "debit": Decimal(row["debit"]),
        "credit": Decimal(row["credit"]),
        "currency": row["currency"],
        "external_account_id": row["external_account_id"],
        "metadata": json.loads(row["metadata_json"]) if row["metadata_json"] else {},
        "line_order": row["line_order"],
    }


def signed_delta(normal_balance: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Balance change of an account for the given debit/credit amounts"""
    if normal_balance == NormalBalance.DEBIT.value:
        return debit - credit
    return credit - debit


class LedgerStore:
    """Journal entry engine for one company

    Args:
        db: SQLiteAdapter instance
        company_id: owning company
        chart: ChartOfAccounts, consulted to provision external mirrors for
            lines that only name a financial account

    Example:
    ```python
    ledger = LedgerStore(db, "acme", chart)
    entry_id = await ledger.create_entry(
        entry_date="2024-03-01",
        description="Office rent",
        lines=[
            JournalLine(account_id=rent_id, debit=Decimal("900")),
            JournalLine(account_id=SystemAccounts.ACCOUNTS_PAYABLE, credit=Decimal("900")),
        ],
        source_type="manual",
    )
    ```
    """

    def __init__(self, db: SQLiteAdapter, company_id: str, chart: ChartOfAccounts | None = None):
        self.db = db
        self.company_id = company_id
        self.chart = chart

    # -------------------------------------------------------------------------
    # posting
    # -------------------------------------------------------------------------

    async def create_entry(
        self,
        entry_date: str | None,
        description: str,
        lines: list[JournalLine],
        source_type: SourceType | str = SourceType.MANUAL,
        source_id: str | None = None,
        currency: str | None = None,
        actor: str | None = None,
    ) -> str:
        """Validate and post an entry

        Returns:
            The new entry id
        """
        entry = JournalEntry(
            entry_date=to_date_str(entry_date),
            description=description,
            lines=lines,
            source_type=SourceType(source_type).value,
            source_id=source_id,
            currency=currency,
            created_by=actor,
        )
        return await self.save_entry(entry)

    async def save_entry(self, entry: JournalEntry) -> str:
        """Post a prepared entry

        Validation happens before the transaction starts; nothing is
        written when it fails.

        Raises:
            LedgerValidationError: empty, negative or zero lines
            UnbalancedEntryError: |debit - credit| > 0.02
            UnknownAccountError: a line names an unknown or archived account
            AccountResolutionError: an account disappeared during posting
            TransactionConflictError: the database stayed locked
        """
        await self._prepare(entry)

        # totals first: a vanished account must surface as AccountResolutionError,
        # not as a foreign key failure on the line insert
        async def work() -> str:
            await self._apply_account_totals(entry)
            await self._write_entry(entry)
            await self._apply_external_balances(entry)
            return entry.entry_id

        entry_id = await self.db.run_transaction(work)

        logger.debug(
            f"Posted ledger entry {entry_id}",
            extra={
                "company_id": self.company_id,
                "source_type": entry.source_type,
                "source_id": entry.source_id,
                "total": str(entry.total_debit),
            },
        )
        return entry_id

    async def _prepare(self, entry: JournalEntry) -> None:
        """Round, validate and resolve the entry's lines in place"""
        if not entry.lines:
            raise LedgerValidationError("A ledger entry needs at least one line")
        if not entry.description or not str(entry.description).strip():
            raise LedgerValidationError("A ledger entry needs a description")

        entry.entry_date = to_date_str(entry.entry_date)
        default_currency = entry.currency or (self.chart.currency if self.chart else Defaults.CURRENCY)

        for index, line in enumerate(entry.lines):
            try:
                line.debit = to_money(line.debit)
                line.credit = to_money(line.credit)
            except ValueError as e:
                raise LedgerValidationError(f"Line {index}: {e}") from e

            if line.debit < 0 or line.credit < 0:
                raise LedgerValidationError(f"Line {index}: amounts must not be negative")
            if line.debit == 0 and line.credit == 0:
                raise LedgerValidationError(f"Line {index}: debit and credit are both zero")

            line.currency = line.currency or default_currency

            if not line.account_id and line.external_account_id and self.chart is not None:
                line.account_id = await self.chart.get_or_create_external_account_mirror(
                    line.external_account_id
                )

        if not entry.is_balanced():
            raise UnbalancedEntryError(entry.total_debit, entry.total_credit)

        # reversals may touch accounts archived since the original posting
        for account_id in {line.account_id for line in entry.lines}:
            row = await self.db.fetchone(
                "SELECT is_active FROM ledger_account WHERE company_id = ? AND account_id = ?",
                (self.company_id, account_id),
            )
            if row is None or (not row["is_active"] and not entry.is_reversal):
                raise UnknownAccountError(account_id)

        if entry.currency is None:
            entry.currency = entry.lines[0].currency

    async def _write_entry(self, entry: JournalEntry) -> None:
        await self.db.execute(
            """
            INSERT INTO ledger_entry (
                entry_id, company_id, entry_date, description,
                total_debit, total_credit, source_id, source_type, currency,
                is_reversal, reverses_entry_id, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.entry_id,
                self.company_id,
                entry.entry_date,
                entry.description,
                money_str(entry.total_debit),
                money_str(entry.total_credit),
                entry.source_id,
                entry.source_type,
                entry.currency,
                int(entry.is_reversal),
                entry.reverses_entry_id,
                entry.created_by,
                now_iso(),
            ),
        )

        await self.db.executemany(
            """
            INSERT INTO ledger_line (
                entry_id, company_id, account_id, debit, credit, currency,
                external_account_id, metadata_json, line_order
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    entry.entry_id,
                    self.company_id,
                    line.account_id,
                    money_str(line.debit),
                    money_str(line.credit),
                    line.currency,
                    line.external_account_id,
                    json.dumps(line.metadata, default=str) if line.metadata else None,
                    order,
                )
                for order, line in enumerate(entry.lines)
            ],
        )

    async def _apply_account_totals(self, entry: JournalEntry) -> None:
        """Read-modify-write the running totals of each touched account"""
        debits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        credits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for line in entry.lines:
            debits[line.account_id] += line.debit
            credits[line.account_id] += line.credit

        now = now_iso()
        for account_id in debits:
            row = await self.db.fetchone(
                """
                SELECT normal_balance, balance, debit_total, credit_total
                FROM ledger_account
                WHERE company_id = ? AND account_id = ?
                """,
                (self.company_id, account_id),
            )
            if row is None:
                raise AccountResolutionError(account_id)

            debit, credit = debits[account_id], credits[account_id]
            balance = Decimal(row["balance"]) + signed_delta(row["normal_balance"], debit, credit)

            await self.db.execute(
                """
                UPDATE ledger_account
                SET balance = ?, debit_total = ?, credit_total = ?, updated_at = ?
                WHERE company_id = ? AND account_id = ?
                """,
                (
                    money_str(balance),
                    money_str(Decimal(row["debit_total"]) + debit),
                    money_str(Decimal(row["credit_total"]) + credit),
                    now,
                    self.company_id,
                    account_id,
                ),
            )

    async def _apply_external_balances(self, entry: JournalEntry) -> None:
        """Move current_balance of each linked financial account by debit - credit"""
        deltas: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for line in entry.lines:
            if line.external_account_id:
                deltas[line.external_account_id] += line.debit - line.credit

        now = now_iso()
        for external_id, delta in deltas.items():
            row = await self.db.fetchone(
                """
                SELECT current_balance FROM financial_account
                WHERE company_id = ? AND account_id = ?
                """,
                (self.company_id, external_id),
            )
            if row is None:
                raise AccountResolutionError(external_id, kind="financial")

            await self.db.execute(
                """
                UPDATE financial_account
                SET current_balance = ?, updated_at = ?
                WHERE company_id = ? AND account_id = ?
                """,
                (
                    money_str(Decimal(row["current_balance"]) + delta),
                    now,
                    self.company_id,
                    external_id,
                ),
            )

    # -------------------------------------------------------------------------
    # read
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> dict[str, Any] | None:
        """Entry header with its ordered lines (None when absent)"""
        row = await self.db.fetchone(
            f"SELECT {_ENTRY_COLUMNS} FROM ledger_entry WHERE company_id = ? AND entry_id = ?",
            (self.company_id, entry_id),
        )
        if not row:
            return None

        entry = entry_from_row(row)
        lines = await self.db.fetchall(
            """
            SELECT line_id, entry_id, account_id, debit, credit, currency,
                   external_account_id, metadata_json, line_order
            FROM ledger_line
            WHERE entry_id = ?
            ORDER BY line_order
            """,
            (entry_id,),
        )
        entry["lines"] = [line_from_row(line) for line in lines]
        return entry

    async def get_entries_by_account(
        self,
        account_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Line history of one ledger account, newest first"""
        rows = await self.db.fetchall(
            """
            SELECT entry_id, entry_date, description, source_type, source_id,
                   is_reversal, reversed, debit, credit, currency, external_account_id
            FROM v_account_ledger
            WHERE company_id = ? AND account_id = ?
            ORDER BY entry_date DESC, entry_id
            LIMIT ? OFFSET ?
            """,
            (self.company_id, account_id, limit, offset),
        )

        return [
            {
                "entry_id": row["entry_id"],
                "entry_date": row["entry_date"],
                "description": row["description"],
                "source_type": row["source_type"],
                "source_id": row["source_id"],
                "is_reversal": bool(row["is_reversal"]),
                "reversed": bool(row["reversed"]),
                "debit": Decimal(row["debit"]),
                "credit": Decimal(row["credit"]),
                "currency": row["currency"],
                "external_account_id": row["external_account_id"],
            }
            for row in rows
        ]

    async def get_entries_by_source(
        self,
        source_type: SourceType | str,
        source_id: str,
    ) -> list[dict[str, Any]]:
        """All entries posted for one source record, oldest first"""
        rows = await self.db.fetchall(
            """
            SELECT entry_id FROM ledger_entry
            WHERE company_id = ? AND source_type = ? AND source_id = ?
            ORDER BY created_at, rowid
            """,
            (self.company_id, SourceType(source_type).value, source_id),
        )

        entries = []
        for row in rows:
            entry = await self.get_entry(row["entry_id"])
            if entry is not None:
                entries.append(entry)
        return entries

    async def iter_entries(self) -> AsyncIterator[dict[str, Any]]:
        """Full entry history with lines, in posting order"""
        headers = await self.db.fetchall(
            f"""
            SELECT {_ENTRY_COLUMNS} FROM ledger_entry
            WHERE company_id = ?
            ORDER BY created_at, rowid
            """,
            (self.company_id,),
        )
        line_rows = await self.db.fetchall(
            """
            SELECT line_id, entry_id, account_id, debit, credit, currency,
                   external_account_id, metadata_json, line_order
            FROM ledger_line
            WHERE company_id = ?
            ORDER BY entry_id, line_order
            """,
            (self.company_id,),
        )

        lines_by_entry: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for line in line_rows:
            lines_by_entry[line["entry_id"]].append(line_from_row(line))

        for header in headers:
            entry = entry_from_row(header)
            entry["lines"] = lines_by_entry.get(entry["entry_id"], [])
            yield entry

    async def count_entries(self) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) AS n FROM ledger_entry WHERE company_id = ?",
            (self.company_id,),
        )
        return row["n"] if row else 0

    async def get_account_balance(self, account_id: str) -> Decimal:
        """Stored running balance of a ledger account

        Raises:
            UnknownAccountError: no such account
        """
        row = await self.db.fetchone(
            "SELECT balance FROM ledger_account WHERE company_id = ? AND account_id = ?",
            (self.company_id, account_id),
        )
        if row is None:
            raise UnknownAccountError(account_id)
        return Decimal(row["balance"])
