"""
Ledger repair CLI

Usage:
    python -m scripts.repair_ledger analyze
    python -m scripts.repair_ledger recommend
    python -m scripts.repair_ledger diagnose --account <financial_account_id>
    python -m scripts.repair_ledger recalculate [--ledger-accounts] [--dry-run]
    python -m scripts.repair_ledger link --account <financial_account_id> [--limit N] [--dry-run]
    python -m scripts.repair_ledger post-missing [--limit N] [--dry-run]
    python -m scripts.repair_ledger rebuild [--limit N] [--dry-run]
    python -m scripts.repair_ledger merge --from Subscription --to Subscriptions [--dry-run]

Common options: --company <id>, --db <path>
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

# add the project root to the Python path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.ledger.context import CompanyLedger
from core.logging import setup_logging
from repair.analysis import BalanceAnalyzer
from repair.backfill import LedgerBackfill
from repair.progress import BatchProgress
from repair.recalculation import BalanceRecalculator

logger = logging.getLogger("repair_ledger")


def log_progress(progress: BatchProgress) -> None:
    logger.info(
        f"{progress.processed}/{progress.total} processed, "
        f"{progress.updated} updated, {progress.errors} error(s)"
    )


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()

    async with SQLiteAdapter(args.db) as db:
        await init_schema(db)
        company = await CompanyLedger.open(db, args.company, settings.default_currency)

        analyzer = BalanceAnalyzer(company)
        backfill = LedgerBackfill(company, settings.repair)

        if args.command == "analyze":
            print_json(await analyzer.analyze_discrepancies())

        elif args.command == "recommend":
            print_json(await analyzer.get_repair_recommendations())

        elif args.command == "diagnose":
            print_json(await analyzer.diagnose(args.account))

        elif args.command == "recalculate":
            recalculator = BalanceRecalculator(company)
            result = await recalculator.recalculate_balances(dry_run=args.dry_run, on_progress=log_progress)
            if args.ledger_accounts:
                result["ledger_accounts"] = await recalculator.recalculate_ledger_accounts(dry_run=args.dry_run)
            print_json(result)
            return 1 if result["errors"] else 0

        elif args.command == "link":
            result = await backfill.repair_missing_links(
                args.account,
                dry_run=args.dry_run,
                limit=args.limit,
                on_progress=log_progress,
            )
            print_json(result.to_dict())
            return 1 if result.errors else 0

        elif args.command == "post-missing":
            result = await backfill.post_missing_entries(
                dry_run=args.dry_run,
                limit=args.limit,
                on_progress=log_progress,
            )
            print_json(result.to_dict())
            return 1 if result.errors else 0

        elif args.command == "rebuild":
            result = await backfill.rebuild_all_entries(
                dry_run=args.dry_run,
                limit=args.limit,
                on_progress=log_progress,
            )
            print_json(result.to_dict())
            return 1 if result.errors else 0

        elif args.command == "merge":
            result = await backfill.merge_categories(
                args.source,
                args.target,
                kind=args.kind,
                dry_run=args.dry_run,
                on_progress=log_progress,
            )
            print_json(result.to_dict())
            return 1 if result.errors else 0

    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Ledger reconciliation and repair")
    parser.add_argument("--company", default=settings.default_company_id, help="Company id")
    parser.add_argument("--db", type=Path, default=settings.db_path, help="SQLite file")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("analyze", help="Expected vs stored balances")
    sub.add_parser("recommend", help="Suggested repair actions")

    diagnose = sub.add_parser("diagnose", help="Trace one financial account")
    diagnose.add_argument("--account", required=True, help="Financial account id")

    recalculate = sub.add_parser("recalculate", help="Replay the ledger into the balances")
    recalculate.add_argument("--ledger-accounts", action="store_true", help="Also recompute ledger accounts")
    recalculate.add_argument("--dry-run", action="store_true", help="Report without writing")

    link = sub.add_parser("link", help="Link paid expenses to a financial account")
    link.add_argument("--account", required=True, help="Default financial account id")
    link.add_argument("--limit", type=int, default=None, help="Maximum number of records")
    link.add_argument("--dry-run", action="store_true", help="List without changing")

    post_missing = sub.add_parser("post-missing", help="Post entries missing after a failed posting")
    post_missing.add_argument("--limit", type=int, default=None, help="Maximum number of items")
    post_missing.add_argument("--dry-run", action="store_true", help="List without posting")

    rebuild = sub.add_parser("rebuild", help="Reverse and re-post every settled record")
    rebuild.add_argument("--limit", type=int, default=None, help="Maximum number of records")
    rebuild.add_argument("--dry-run", action="store_true", help="List without changing")

    merge = sub.add_parser("merge", help="Merge one category into another")
    merge.add_argument("--from", dest="source", required=True, help="Category to merge away")
    merge.add_argument("--to", dest="target", required=True, help="Category to keep")
    merge.add_argument("--kind", choices=["expense", "income"], default="expense")
    merge.add_argument("--dry-run", action="store_true", help="List without changing")

    return parser


if __name__ == "__main__":
    args = build_parser().parse_args()
    setup_logging("cli", console_level=logging.getLevelName(get_settings().config.log_level))
    sys.exit(asyncio.run(run(args)))
