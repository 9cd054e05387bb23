"""
Balance analysis

Read-only checks of the financial account balances:

- analyze_discrepancies: expected balance from the source records vs the
  stored current_balance
- get_repair_recommendations: the analysis turned into an action list
- diagnose: full trace of one account (records, ledger lines and the three
  pairwise discrepancies)
"""

import logging
from decimal import Decimal
from typing import Any

from core.constants import Tolerances
from core.ledger.context import CompanyLedger
from core.ledger.entry_builder import is_paid, is_settled, settled_delta
from core.types import SourceKind
from core.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def _sum_amounts(records: list[dict[str, Any]]) -> Decimal:
    return sum((to_money(record["amount"]) for record in records), ZERO)


class BalanceAnalyzer:
    """Expected-vs-stored balance checks for one company

    Args:
        company: CompanyLedger
    """

    def __init__(self, company: CompanyLedger):
        self.company = company

    async def analyze_discrepancies(self) -> dict[str, Any]:
        """Compare every financial account with its source records

        expected = initial_balance + settled income - settled expenses
        (credit notes count with the opposite sign).

        Returns:
            {
                "accounts": [per-account analysis],
                "issues_found": accounts with |discrepancy| > 0.01,
                "paid_without_account": {"count", "total"},
                "unposted": records and accounts whose entry is missing,
                "totals": {"expenses", "paid_expenses", "incomes"},
            }
        """
        records = await self.company.records.list()
        accounts = await self.company.financial_accounts.list(include_inactive=True)

        expenses = [r for r in records if r["kind"] == SourceKind.EXPENSE.value]
        incomes = [r for r in records if r["kind"] == SourceKind.INCOME.value]
        paid_expenses = [r for r in expenses if is_paid(r)]
        paid_unlinked = [r for r in paid_expenses if not r["financial_account_id"]]
        unposted = await self.company.records.list_unposted()
        missing_openings = await self.company.binding.accounts_missing_opening()

        analysis = []
        for account in accounts:
            settled = [
                r for r in records
                if r["financial_account_id"] == account["account_id"] and is_settled(r)
            ]
            expected = account["initial_balance"] + sum((settled_delta(r) for r in settled), ZERO)
            discrepancy = abs(expected - account["current_balance"])

            analysis.append(
                {
                    "account_id": account["account_id"],
                    "name": account["name"],
                    "account_type": account["account_type"],
                    "currency": account["currency"],
                    "initial_balance": account["initial_balance"],
                    "current_balance": account["current_balance"],
                    "expected_balance": expected,
                    "discrepancy": discrepancy,
                    "has_issue": discrepancy > Tolerances.BALANCE_DRIFT,
                    "expense_count": sum(1 for r in settled if r["kind"] == SourceKind.EXPENSE.value),
                    "income_count": sum(1 for r in settled if r["kind"] == SourceKind.INCOME.value),
                }
            )

        issues_found = sum(1 for a in analysis if a["has_issue"])
        if issues_found:
            logger.warning(
                f"{issues_found} financial account(s) drifted from their records",
                extra={"company_id": self.company.company_id},
            )

        if unposted or missing_openings:
            logger.warning(
                f"{len(unposted)} record(s) and {len(missing_openings)} account opening(s) lack a ledger entry",
                extra={"company_id": self.company.company_id},
            )

        return {
            "accounts": analysis,
            "issues_found": issues_found,
            "paid_without_account": {
                "count": len(paid_unlinked),
                "total": _sum_amounts(paid_unlinked),
            },
            "unposted": {
                "records": len(unposted),
                "records_total": _sum_amounts(unposted),
                "record_ids": [r["record_id"] for r in unposted],
                "accounts": len(missing_openings),
                "account_ids": [a["account_id"] for a in missing_openings],
            },
            "totals": {
                "expenses": _sum_amounts(expenses),
                "paid_expenses": _sum_amounts(paid_expenses),
                "incomes": _sum_amounts(incomes),
            },
        }

    async def get_repair_recommendations(self) -> dict[str, Any]:
        """Ordered repair actions derived from the analysis

        Order: link paid records first, post the missing entries, rebuild
        the settled records' entries, then recalculate the balances from
        the ledger.
        """
        analysis = await self.analyze_discrepancies()
        records = await self.company.records.list()
        recommendations = []

        unlinked = analysis["paid_without_account"]
        if unlinked["count"] > 0:
            recommendations.append(
                {
                    "action": "repair_missing_links",
                    "title": "Link paid expenses to a financial account",
                    "description": (
                        f"{unlinked['count']} paid expense(s) have no financial account "
                        "and do not move any account balance."
                    ),
                    "count": unlinked["count"],
                    "total_amount": unlinked["total"],
                }
            )

        unposted = analysis["unposted"]
        missing_count = unposted["records"] + unposted["accounts"]
        if missing_count > 0:
            recommendations.append(
                {
                    "action": "post_missing_entries",
                    "title": "Post missing ledger entries",
                    "description": (
                        f"{unposted['records']} record(s) and {unposted['accounts']} account opening(s) "
                        "were saved without a ledger entry."
                    ),
                    "count": missing_count,
                    "total_amount": unposted["records_total"],
                    "priority": "high",
                }
            )

        settled = [r for r in records if is_settled(r)]
        if settled:
            recommendations.append(
                {
                    "action": "rebuild_all_entries",
                    "title": "Rebuild ledger entries",
                    "description": (
                        f"Reverse and re-post the entries of {len(settled)} settled record(s) "
                        "so every entry carries its financial account."
                    ),
                    "count": len(settled),
                    "priority": "high",
                }
            )

        if analysis["issues_found"] > 0:
            recommendations.append(
                {
                    "action": "recalculate_balances",
                    "title": "Recalculate account balances",
                    "description": (
                        f"{analysis['issues_found']} account(s) have balance discrepancies. "
                        "Run after rebuilding ledger entries."
                    ),
                    "count": analysis["issues_found"],
                }
            )

        return {"analysis": analysis, "recommendations": recommendations}

    async def diagnose(self, account_id: str) -> dict[str, Any]:
        """Trace one financial account

        Raises:
            FinancialAccountNotFoundError: unknown account
        """
        account = await self.company.financial_accounts.require(account_id)
        records = await self.company.records.list(financial_account_id=account_id)
        settled = [r for r in records if is_settled(r)]

        expected_from_records = account["initial_balance"] + sum(
            (settled_delta(r) for r in settled), ZERO
        )

        ledger_lines = []
        ledger_balance = ZERO
        async for entry in self.company.ledger.iter_entries():
            if entry["reversed"] or entry["is_reversal"]:
                continue
            for line in entry["lines"]:
                if line["external_account_id"] != account_id:
                    continue
                delta = line["debit"] - line["credit"]
                ledger_balance += delta
                ledger_lines.append(
                    {
                        "entry_id": entry["entry_id"],
                        "entry_date": entry["entry_date"],
                        "description": entry["description"],
                        "source_type": entry["source_type"],
                        "source_id": entry["source_id"],
                        "debit": line["debit"],
                        "credit": line["credit"],
                        "delta": delta,
                    }
                )

        ledger_lines.sort(key=lambda item: item["entry_date"] or "")
        stored = account["current_balance"]

        return {
            "account": {
                "account_id": account["account_id"],
                "name": account["name"],
                "account_type": account["account_type"],
                "initial_balance": account["initial_balance"],
                "current_balance": stored,
                "ledger_account_id": account["ledger_account_id"],
            },
            "records": {
                "count": len(settled),
                "expected_balance": expected_from_records,
                "items": [
                    {
                        "record_id": r["record_id"],
                        "kind": r["kind"],
                        "record_date": r["record_date"],
                        "counterparty": r["counterparty"],
                        "amount": r["amount"],
                        "document_type": r["document_type"],
                        "payment_status": r["payment_status"],
                        "ledger_entry_id": r["ledger_entry_id"],
                        "delta": settled_delta(r),
                    }
                    for r in settled
                ],
            },
            "ledger": {
                "line_count": len(ledger_lines),
                "calculated_balance": ledger_balance,
                "lines": ledger_lines,
            },
            "discrepancies": {
                "records_vs_ledger": abs(expected_from_records - ledger_balance),
                "ledger_vs_stored": abs(ledger_balance - stored),
                "records_vs_stored": abs(expected_from_records - stored),
            },
        }
