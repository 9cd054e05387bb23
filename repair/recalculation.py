"""
Balance recalculation

Replays the ledger to recompute balances. Entries that were reversed and
the reversals themselves are skipped; each pair cancels exactly, so the
result equals the net of the live entries.

The replay reads the whole history first and writes afterwards, account by
account, outside a single transaction. An entry posted while a run is in
progress can be missed or counted twice; re-running the recalculation
after the writers are idle corrects it.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any

from core.constants import Tolerances
from core.ledger.context import CompanyLedger
from core.ledger.store import signed_delta
from core.utils.dates import now_iso
from core.utils.money import ZERO, money_str
from repair.progress import BatchProgress, ProgressCallback

logger = logging.getLogger(__name__)


def _live(entry: dict[str, Any]) -> bool:
    return not entry["reversed"] and not entry["is_reversal"]


class BalanceRecalculator:
    """Recomputes stored balances from the entry history

    Args:
        company: CompanyLedger
    """

    def __init__(self, company: CompanyLedger):
        self.company = company

    async def recalculate_balances(
        self,
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """Overwrite each financial account's current_balance with the replayed value

        Only accounts off by more than 0.01 are written.

        Returns:
            {total, processed, updated, errors, balances, details, summary, dry_run}
        """
        computed: dict[str, Decimal] = defaultdict(lambda: ZERO)
        details: dict[str, dict[str, Any]] = {}
        total_entries = 0
        with_external = 0

        async for entry in self.company.ledger.iter_entries():
            total_entries += 1
            if not _live(entry):
                continue

            touched = False
            for line in entry["lines"]:
                external_id = line["external_account_id"]
                if not external_id:
                    continue

                touched = True
                computed[external_id] += line["debit"] - line["credit"]
                info = details.setdefault(
                    external_id,
                    {"entry_count": 0, "total_debit": ZERO, "total_credit": ZERO},
                )
                info["entry_count"] += 1
                info["total_debit"] += line["debit"]
                info["total_credit"] += line["credit"]

            if touched:
                with_external += 1

        accounts = await self.company.financial_accounts.list(include_inactive=True)
        result: dict[str, Any] = {
            "total": len(accounts),
            "processed": 0,
            "updated": 0,
            "errors": [],
            "balances": {},
            "details": {},
            "dry_run": dry_run,
        }

        for account in accounts:
            account_id = account["account_id"]
            calculated = computed.get(account_id, ZERO)
            stored = account["current_balance"]
            info = details.get(account_id, {"entry_count": 0, "total_debit": ZERO, "total_credit": ZERO})

            result["details"][account_id] = {
                "name": account["name"],
                "current_balance": stored,
                "calculated_balance": calculated,
                **info,
            }

            try:
                if abs(calculated - stored) > Tolerances.BALANCE_DRIFT:
                    result["balances"][account_id] = {
                        "name": account["name"],
                        "old_balance": stored,
                        "new_balance": calculated,
                        "difference": calculated - stored,
                    }
                    if not dry_run:
                        await self.company.financial_accounts.overwrite_balance(account_id, calculated)
                        logger.info(
                            f"Recalculated balance of {account['name']}: {stored} -> {calculated}",
                            extra={"company_id": self.company.company_id, "account_id": account_id},
                        )
                    result["updated"] += 1
            except Exception as e:
                logger.error(f"Failed to update balance of {account_id}: {e}")
                result["errors"].append({"account_id": account_id, "name": account["name"], "error": str(e)})

            result["processed"] += 1
            if on_progress is not None:
                on_progress(
                    BatchProgress(
                        processed=result["processed"],
                        total=result["total"],
                        updated=result["updated"],
                        errors=len(result["errors"]),
                    )
                )

        result["summary"] = {
            "total_ledger_entries": total_entries,
            "entries_with_financial_account": with_external,
            "entries_without_financial_account": total_entries - with_external,
            "accounts_in_ledger": len(computed),
        }
        return result

    async def recalculate_ledger_accounts(self, dry_run: bool = False) -> dict[str, Any]:
        """Recompute balance/debit_total/credit_total of every ledger account

        Unlike the financial account replay, reversed entries and their
        reversals are included: they leave the balance unchanged but count
        in the debit and credit totals.

        Returns:
            {total, updated, accounts: {account_id: {old_*, new_*}}, dry_run}
        """
        debits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        credits: dict[str, Decimal] = defaultdict(lambda: ZERO)

        # totals include reversal pairs, as the running totals do
        async for entry in self.company.ledger.iter_entries():
            for line in entry["lines"]:
                debits[line["account_id"]] += line["debit"]
                credits[line["account_id"]] += line["credit"]

        accounts = await self.company.chart.list_accounts(include_inactive=True)
        changes: dict[str, dict[str, Any]] = {}

        for account in accounts:
            account_id = account["account_id"]
            debit = debits.get(account_id, ZERO)
            credit = credits.get(account_id, ZERO)
            balance = signed_delta(account["normal_balance"], debit, credit)

            if (
                balance == account["balance"]
                and debit == account["debit_total"]
                and credit == account["credit_total"]
            ):
                continue

            changes[account_id] = {
                "name": account["name"],
                "old_balance": account["balance"],
                "new_balance": balance,
                "old_debit_total": account["debit_total"],
                "new_debit_total": debit,
                "old_credit_total": account["credit_total"],
                "new_credit_total": credit,
            }

            if not dry_run:
                async with self.company.db.transaction():
                    await self.company.db.execute(
                        """
                        UPDATE ledger_account
                        SET balance = ?, debit_total = ?, credit_total = ?, updated_at = ?
                        WHERE company_id = ? AND account_id = ?
                        """,
                        (
                            money_str(balance),
                            money_str(debit),
                            money_str(credit),
                            now_iso(),
                            self.company.company_id,
                            account_id,
                        ),
                    )

        if changes and not dry_run:
            logger.info(
                f"Recalculated {len(changes)} ledger account(s)",
                extra={"company_id": self.company.company_id},
            )

        return {
            "total": len(accounts),
            "updated": len(changes),
            "accounts": changes,
            "dry_run": dry_run,
        }
