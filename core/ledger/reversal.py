"""
Reversal engine

Cancels a posted entry with a mirror entry (debit and credit swapped)
instead of deleting it. Reversing the same entry twice returns the first
reversal.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.ledger.entry_builder import JournalEntry, JournalLine
from core.ledger.errors import EntryNotFoundError, LedgerValidationError
from core.types import SourceType
from core.utils.dates import now_iso, today_iso

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter
    from core.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


class ReversalEngine:
    """Posts reversals through the ledger store

    Args:
        ledger: LedgerStore of the same company
    """

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    @property
    def db(self) -> SQLiteAdapter:
        return self.ledger.db

    async def reverse_entry(
        self,
        entry_id: str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> str:
        """Reverse an entry

        The reversal is posted and the original is flagged in the same
        transaction.

        Returns:
            Id of the reversal entry (the existing one if already reversed)

        Raises:
            EntryNotFoundError: unknown entry id
            LedgerValidationError: the entry is itself a reversal
        """
        created = False

        async def work() -> str:
            nonlocal created
            original = await self.ledger.get_entry(entry_id)
            if original is None:
                raise EntryNotFoundError(entry_id)
            if original["reversed"] and original["reversal_entry_id"]:
                return original["reversal_entry_id"]
            if original["is_reversal"]:
                raise LedgerValidationError(f"Entry {entry_id} is a reversal and cannot be reversed")

            reversal = JournalEntry(
                entry_date=today_iso(),
                description=f"Reversal: {original['description']}",
                lines=[
                    JournalLine(
                        account_id=line["account_id"],
                        debit=line["credit"],
                        credit=line["debit"],
                        currency=line["currency"],
                        external_account_id=line["external_account_id"],
                        metadata={**line["metadata"], "reversal_reason": reason} if reason else line["metadata"],
                    )
                    for line in original["lines"]
                ],
                source_type=SourceType.REVERSAL.value,
                source_id=original["source_id"],
                currency=original["currency"],
                is_reversal=True,
                reverses_entry_id=entry_id,
                created_by=actor,
            )
            reversal_id = await self.ledger.save_entry(reversal)

            await self.db.execute(
                """
                UPDATE ledger_entry
                SET reversed = 1, reversal_entry_id = ?, reversed_at = ?,
                    reversed_by = ?, reversal_reason = ?
                WHERE company_id = ? AND entry_id = ?
                """,
                (reversal_id, now_iso(), actor, reason, self.ledger.company_id, entry_id),
            )
            created = True
            return reversal_id

        reversal_id = await self.db.run_transaction(work)

        if created:
            logger.info(
                f"Reversed ledger entry {entry_id}",
                extra={
                    "company_id": self.ledger.company_id,
                    "reversal_entry_id": reversal_id,
                    "actor": actor,
                    "reason": reason,
                },
            )
        return reversal_id
