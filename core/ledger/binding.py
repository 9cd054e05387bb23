"""
Source binding layer

Keeps expense/income records and the ledger in step:

- create: save the record, post one entry, store its id on the record
- update: save the patch; when a ledger-relevant field changed, reverse the
  linked entry and post a fresh one (reverse + recreate in one transaction)
- delete: reverse the linked entry, then remove the record
- open_financial_account: create the account and post its opening balance
- post_account_opening: (re)post a missing opening entry

A ledger failure never rolls back a saved record. It is logged and
returned in the PostingResult so the caller can retry or leave it to the
repair toolkit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from core.ledger.entry_builder import LEDGER_RELEVANT_FIELDS, SourceEntryBuilder
from core.storage.record_store import normalize_fields
from core.storage.settings_store import normalize_category
from core.types import FinancialAccountType, SourceKind, SourceType
from core.utils.money import to_money

if TYPE_CHECKING:
    from core.ledger.accounts import ChartOfAccounts
    from core.ledger.reversal import ReversalEngine
    from core.ledger.store import LedgerStore
    from core.storage.financial_account_store import FinancialAccountStore
    from core.storage.record_store import SourceRecordStore

logger = logging.getLogger(__name__)


@dataclass
class PostingResult:
    """Outcome of a binding call

    Attributes:
        record_id: source record (or financial account) id
        record_saved: the record exists in the store after the call
        ledger_posted: the ledger reflects the record after the call
        ledger_entry_id: entry currently linked to the record
        ledger_error: the ledger failure, if any
        rebuilt: an existing entry was reversed and replaced
    """

    record_id: str
    record_saved: bool
    ledger_posted: bool
    ledger_entry_id: str | None = None
    ledger_error: Exception | None = None
    rebuilt: bool = False

    @property
    def ok(self) -> bool:
        return self.ledger_error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "record_saved": self.record_saved,
            "ledger_posted": self.ledger_posted,
            "ledger_entry_id": self.ledger_entry_id,
            "ledger_error": str(self.ledger_error) if self.ledger_error else None,
            "rebuilt": self.rebuilt,
        }


def changed_ledger_fields(record: dict[str, Any], patch: dict[str, Any]) -> set[str]:
    """Ledger-relevant fields whose patched value differs from the stored one"""
    values = normalize_fields(patch)
    changed = set()

    for key, value in values.items():
        if key not in LEDGER_RELEVANT_FIELDS:
            continue

        current = record.get(key)
        if key == "category":
            if normalize_category(value) != normalize_category(current):
                changed.add(key)
        elif key == "amount":
            if to_money(value) != to_money(current):
                changed.add(key)
        elif (value or None) != (current or None):
            changed.add(key)

    return changed


class SourceBinding:
    """Posts expense/income records and account openings to the ledger

    Args:
        records: SourceRecordStore of the company
        financial_accounts: FinancialAccountStore of the company
        chart: ChartOfAccounts of the company
        ledger: LedgerStore of the company
        reversal: ReversalEngine of the company
    """

    def __init__(
        self,
        records: SourceRecordStore,
        financial_accounts: FinancialAccountStore,
        chart: ChartOfAccounts,
        ledger: LedgerStore,
        reversal: ReversalEngine,
    ):
        self.records = records
        self.financial_accounts = financial_accounts
        self.chart = chart
        self.ledger = ledger
        self.reversal = reversal
        self.builder = SourceEntryBuilder(chart)

    @property
    def db(self):
        return self.ledger.db

    # -------------------------------------------------------------------------
    # create
    # -------------------------------------------------------------------------

    async def create_expense(self, fields: dict[str, Any], actor: str | None = None) -> PostingResult:
        return await self._create(SourceKind.EXPENSE, fields, actor)

    async def create_income(self, fields: dict[str, Any], actor: str | None = None) -> PostingResult:
        return await self._create(SourceKind.INCOME, fields, actor)

    async def _create(
        self,
        kind: SourceKind,
        fields: dict[str, Any],
        actor: str | None,
    ) -> PostingResult:
        # invalid input raises here; nothing is saved
        record = await self.records.create(kind, fields, actor=actor)

        try:
            entry_id = await self._post(record, actor)
        except Exception as e:
            self._log_failure("post", record["record_id"], e)
            return PostingResult(record["record_id"], record_saved=True, ledger_posted=False, ledger_error=e)

        return PostingResult(
            record["record_id"],
            record_saved=True,
            ledger_posted=entry_id is not None,
            ledger_entry_id=entry_id,
        )

    async def _post(self, record: dict[str, Any], actor: str | None) -> str | None:
        """Post the record's entry and link it (one transaction)

        Zero-amount records are not posted.
        """
        if to_money(record["amount"]) == 0:
            return None

        async def work() -> str:
            entry = await self.builder.from_record(record, actor)
            entry_id = await self.ledger.save_entry(entry)
            await self.records.set_ledger_entry_id(record["record_id"], entry_id)
            return entry_id

        return await self.db.run_transaction(work)

    # -------------------------------------------------------------------------
    # update
    # -------------------------------------------------------------------------

    async def update_record(
        self,
        record_id: str,
        patch: dict[str, Any],
        actor: str | None = None,
        force_rebuild: bool = False,
    ) -> PostingResult:
        """Save a patch and rebuild the entry when needed

        Raises:
            RecordNotFoundError: unknown record id
            ValueError: the patch holds an invalid value
        """
        current = await self.records.require(record_id)
        changed = changed_ledger_fields(current, patch)

        record = await self.records.update(record_id, patch, actor=actor)

        if not changed and not force_rebuild:
            return PostingResult(
                record_id,
                record_saved=True,
                ledger_posted=record["ledger_entry_id"] is not None,
                ledger_entry_id=record["ledger_entry_id"],
            )

        try:
            entry_id = await self.rebuild(record, actor, reason=self._rebuild_reason(changed, force_rebuild))
        except Exception as e:
            self._log_failure("rebuild", record_id, e)
            return PostingResult(
                record_id,
                record_saved=True,
                ledger_posted=False,
                ledger_entry_id=record["ledger_entry_id"],
                ledger_error=e,
            )

        return PostingResult(
            record_id,
            record_saved=True,
            ledger_posted=entry_id is not None,
            ledger_entry_id=entry_id,
            rebuilt=True,
        )

    async def rebuild(
        self,
        record: dict[str, Any],
        actor: str | None = None,
        reason: str | None = None,
    ) -> str | None:
        """Reverse the linked entry and post a fresh one

        Runs as one transaction: on failure the old entry stays in place
        and linked.

        Returns:
            The new entry id (None for a zero-amount record)
        """

        async def work() -> str | None:
            if record.get("ledger_entry_id"):
                await self.reversal.reverse_entry(record["ledger_entry_id"], actor=actor, reason=reason)
                await self.records.set_ledger_entry_id(record["record_id"], None)

            return await self._post(record, actor)

        entry_id = await self.db.run_transaction(work)
        logger.info(
            f"Rebuilt ledger entry for record {record['record_id']}",
            extra={
                "company_id": self.records.company_id,
                "old_entry_id": record.get("ledger_entry_id"),
                "new_entry_id": entry_id,
            },
        )
        return entry_id

    @staticmethod
    def _rebuild_reason(changed: set[str], forced: bool) -> str:
        if changed:
            return "Source record updated: " + ", ".join(sorted(changed))
        return "Forced rebuild" if forced else "Source record updated"

    # -------------------------------------------------------------------------
    # delete
    # -------------------------------------------------------------------------

    async def delete_record(self, record_id: str, actor: str | None = None) -> PostingResult:
        """Reverse the linked entry, then delete the record

        The record is kept when the reversal fails.

        Raises:
            RecordNotFoundError: unknown record id
        """
        record = await self.records.require(record_id)
        reversal_id = None

        if record["ledger_entry_id"]:
            try:
                reversal_id = await self.reversal.reverse_entry(
                    record["ledger_entry_id"],
                    actor=actor,
                    reason="Source record deleted",
                )
            except Exception as e:
                self._log_failure("reverse", record_id, e)
                return PostingResult(
                    record_id,
                    record_saved=True,
                    ledger_posted=True,
                    ledger_entry_id=record["ledger_entry_id"],
                    ledger_error=e,
                )

        await self.records.delete(record_id)
        logger.info(
            f"Deleted {record['kind']} record {record_id}",
            extra={"company_id": self.records.company_id, "reversal_entry_id": reversal_id},
        )
        return PostingResult(
            record_id,
            record_saved=False,
            ledger_posted=reversal_id is not None,
            ledger_entry_id=reversal_id,
        )

    # -------------------------------------------------------------------------
    # financial accounts
    # -------------------------------------------------------------------------

    async def open_financial_account(
        self,
        name: str,
        currency: str,
        initial_balance: Decimal | str | int = 0,
        account_type: FinancialAccountType | str = FinancialAccountType.BANK,
        actor: str | None = None,
    ) -> PostingResult:
        """Create a financial account and post its opening balance

        The account starts at current_balance 0; the opening entry moves it
        to the initial balance. A zero initial balance posts nothing.
        """
        account = await self.financial_accounts.create(
            name=name,
            currency=currency,
            initial_balance=initial_balance,
            account_type=account_type,
        )
        account_id = account["account_id"]

        try:
            entry_id = await self.post_account_opening(account_id, actor)
        except Exception as e:
            self._log_failure("opening", account_id, e)
            return PostingResult(account_id, record_saved=True, ledger_posted=False, ledger_error=e)

        return PostingResult(account_id, record_saved=True, ledger_posted=True, ledger_entry_id=entry_id)

    async def post_account_opening(self, account_id: str, actor: str | None = None) -> str | None:
        """Bind the account's mirror and post its opening entry

        Returns:
            The entry id (None when the initial balance is 0)

        Raises:
            FinancialAccountNotFoundError: unknown account
        """
        account = await self.financial_accounts.require(account_id)
        await self.chart.get_or_create_external_account_mirror(account_id)

        entry = await self.builder.from_account_opening(account, actor)
        if entry is None:
            return None
        return await self.ledger.save_entry(entry)

    async def has_opening_entry(self, account_id: str) -> bool:
        """True when an opening entry was posted (a reversed one counts)"""
        entries = await self.ledger.get_entries_by_source(SourceType.ACCOUNT_OPENING, account_id)
        return bool(entries)

    async def accounts_missing_opening(self) -> list[dict[str, Any]]:
        """Accounts with a non-zero initial balance and no opening entry"""
        missing = []
        for account in await self.financial_accounts.list(include_inactive=True):
            if to_money(account["initial_balance"]) == 0:
                continue
            if not await self.has_opening_entry(account["account_id"]):
                missing.append(account)
        return missing

    def _log_failure(self, action: str, record_id: str, error: Exception) -> None:
        logger.error(
            f"Ledger {action} failed for {record_id}: {error}",
            extra={
                "company_id": self.records.company_id,
                "record_id": record_id,
                "error_type": type(error).__name__,
            },
        )
