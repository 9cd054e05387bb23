"""
Ledger backfill

Batch repairs that go through the binding layer, so every change to a
record reverses and re-posts its entry:

- repair_missing_links: link paid expenses to a default financial account
- post_missing_entries: post the entries of records and account openings
  whose ledger posting failed
- rebuild_all_entries: reverse + recreate every settled record's entry
- merge_categories: move records from one category label to another

Items are processed in batches with a pause between batches. A failing
item is recorded in `errors` and the run continues.
"""

import logging
from typing import Any

from core.config.loader import RepairConfig
from core.constants import Defaults
from core.ledger.context import CompanyLedger
from core.ledger.entry_builder import is_settled
from core.storage.settings_store import normalize_category
from core.types import PaymentStatus, SourceKind
from repair.progress import BatchResult, ProgressCallback, run_in_batches

logger = logging.getLogger(__name__)

REPAIR_ACTOR = "system-repair"


def _summary(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "record_id": record["record_id"],
        "kind": record["kind"],
        "record_date": record["record_date"],
        "counterparty": record["counterparty"],
        "category": record["category"],
        "amount": record["amount"],
    }


def _item_id(item: tuple[str, dict[str, Any]]) -> str:
    item_type, payload = item
    return payload["account_id"] if item_type == "account" else payload["record_id"]


def _item_summary(item: tuple[str, dict[str, Any]]) -> dict[str, Any]:
    item_type, payload = item
    if item_type == "record":
        return _summary(payload)
    return {
        "account_id": payload["account_id"],
        "kind": "account-opening",
        "name": payload["name"],
        "amount": payload["initial_balance"],
    }


class LedgerBackfill:
    """Batch ledger repairs for one company

    Args:
        company: CompanyLedger
        config: batch size and inter-batch delay
        actor: user id stamped on the rebuilt entries
    """

    def __init__(
        self,
        company: CompanyLedger,
        config: RepairConfig | None = None,
        actor: str = REPAIR_ACTOR,
    ):
        self.company = company
        self.config = config or RepairConfig(
            batch_size=Defaults.REPAIR_BATCH_SIZE,
            batch_delay_sec=Defaults.REPAIR_BATCH_DELAY_SEC,
        )
        self.actor = actor

    async def _run(
        self,
        records: list[dict[str, Any]],
        patch_for: Any,
        force_rebuild: bool,
        on_progress: ProgressCallback | None,
    ) -> BatchResult:
        async def handle(record: dict[str, Any]) -> bool:
            result = await self.company.binding.update_record(
                record["record_id"],
                patch_for(record),
                actor=self.actor,
                force_rebuild=force_rebuild,
            )
            if result.ledger_error is not None:
                raise result.ledger_error
            return True

        return await run_in_batches(
            records,
            handle,
            item_id=lambda record: record["record_id"],
            batch_size=self.config.batch_size,
            batch_delay_sec=self.config.batch_delay_sec,
            on_progress=on_progress,
        )

    async def repair_missing_links(
        self,
        default_account_id: str,
        dry_run: bool = False,
        limit: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Link paid expenses without a financial account to `default_account_id`

        Records without a paid date get their record date.

        Raises:
            FinancialAccountNotFoundError: unknown default account
        """
        await self.company.financial_accounts.require(default_account_id)

        records = await self.company.records.list_paid_without_account()
        if limit:
            records = records[:limit]

        if dry_run:
            logger.info(f"[DRY RUN] Would link {len(records)} paid expense(s) to {default_account_id}")
            return BatchResult(total=len(records), dry_run=True, items=[_summary(r) for r in records])

        def patch_for(record: dict[str, Any]) -> dict[str, Any]:
            return {
                "financial_account_id": default_account_id,
                "payment_status": PaymentStatus.PAID.value,
                "paid_date": record["paid_date"] or record["record_date"],
            }

        result = await self._run(records, patch_for, force_rebuild=False, on_progress=on_progress)
        logger.info(
            f"Linked paid expenses: {result.updated} updated, {len(result.errors)} error(s)",
            extra={"company_id": self.company.company_id},
        )
        return result

    async def rebuild_all_entries(
        self,
        dry_run: bool = False,
        limit: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Reverse and re-post the entry of every settled record"""
        records = [r for r in await self.company.records.list() if is_settled(r)]
        if limit:
            records = records[:limit]

        if dry_run:
            logger.info(f"[DRY RUN] Would rebuild ledger entries for {len(records)} record(s)")
            return BatchResult(total=len(records), dry_run=True, items=[_summary(r) for r in records])

        logger.info(
            f"Rebuilding ledger entries for {len(records)} record(s)",
            extra={"company_id": self.company.company_id},
        )
        result = await self._run(records, lambda record: {}, force_rebuild=True, on_progress=on_progress)
        logger.info(
            f"Rebuild finished: {result.updated} updated, {len(result.errors)} error(s)",
            extra={"company_id": self.company.company_id},
        )
        return result

    async def post_missing_entries(
        self,
        dry_run: bool = False,
        limit: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Post the entries of account openings and records saved without one

        Openings go first. Records are posted through a forced rebuild, which
        with no linked entry only posts.
        """
        binding = self.company.binding
        items: list[tuple[str, dict[str, Any]]] = [
            ("account", account) for account in await binding.accounts_missing_opening()
        ]
        items += [("record", record) for record in await self.company.records.list_unposted()]
        if limit:
            items = items[:limit]

        if dry_run:
            logger.info(f"[DRY RUN] Would post {len(items)} missing ledger entries")
            return BatchResult(total=len(items), dry_run=True, items=[_item_summary(item) for item in items])

        async def handle(item: tuple[str, dict[str, Any]]) -> bool:
            item_type, payload = item
            if item_type == "account":
                entry_id = await binding.post_account_opening(payload["account_id"], actor=self.actor)
                return entry_id is not None

            result = await binding.update_record(
                payload["record_id"],
                {},
                actor=self.actor,
                force_rebuild=True,
            )
            if result.ledger_error is not None:
                raise result.ledger_error
            return result.ledger_entry_id is not None

        result = await run_in_batches(
            items,
            handle,
            item_id=_item_id,
            batch_size=self.config.batch_size,
            batch_delay_sec=self.config.batch_delay_sec,
            on_progress=on_progress,
        )
        logger.info(
            f"Posted missing entries: {result.updated} posted, {len(result.errors)} error(s)",
            extra={"company_id": self.company.company_id},
        )
        return result

    async def merge_categories(
        self,
        source_category: str,
        target_category: str,
        kind: SourceKind | str = SourceKind.EXPENSE,
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Re-categorise every record of `source_category` as `target_category`

        Raises:
            ValueError: blank labels, or both labels normalise to the same category
        """
        if not normalize_category(source_category) or not normalize_category(target_category):
            raise ValueError("Both categories are required")
        if normalize_category(source_category) == normalize_category(target_category):
            raise ValueError("Source and target category are the same")

        records = await self.company.records.list_by_category(kind, source_category)

        if dry_run:
            logger.info(
                f"[DRY RUN] Would move {len(records)} record(s) from '{source_category}' to '{target_category}'"
            )
            return BatchResult(total=len(records), dry_run=True, items=[_summary(r) for r in records])

        target = " ".join(target_category.split())
        result = await self._run(
            records,
            lambda record: {"category": target},
            force_rebuild=False,
            on_progress=on_progress,
        )
        logger.info(
            f"Merged category '{source_category}' into '{target}': {result.updated} updated",
            extra={"company_id": self.company.company_id},
        )
        return result
