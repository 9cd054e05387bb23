"""
Database initialisation

Creates the schema and seeds the system accounts of a company.

Usage:
    python -m scripts.init_db
    python -m scripts.init_db --company acme --currency USD
"""

import argparse
import asyncio
import logging
from pathlib import Path

# add the project root to the Python path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.ledger.context import CompanyLedger
from core.logging import setup_logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "financial_account",
    "source_record",
    "ledger_account",
    "ledger_entry",
    "ledger_line",
    "ledger_settings",
]


async def verify_schema(db: SQLiteAdapter) -> bool:
    """Check that every table exists"""
    for table in REQUIRED_TABLES:
        if not await db.table_exists(table):
            logger.error(f"Missing table: {table}")
            return False
    return True


async def main(company_id: str, currency: str, db_path: Path) -> None:
    logger.info(f"Initialising database: {db_path}")

    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)

        if not await verify_schema(db):
            raise RuntimeError("Schema verification failed")

        company = await CompanyLedger.open(db, company_id, currency)
        accounts = await company.chart.list_accounts()
        logger.info(f"Company '{company_id}' ready with {len(accounts)} ledger account(s)")


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Create the ledger schema and seed system accounts")
    parser.add_argument(
        "--company",
        default=settings.default_company_id,
        help=f"Company id (default: {settings.default_company_id})",
    )
    parser.add_argument(
        "--currency",
        default=settings.default_currency,
        help=f"Currency of the system accounts (default: {settings.default_currency})",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help="SQLite file (default: from settings.yaml)",
    )
    args = parser.parse_args()

    setup_logging("cli", console_level=logging.getLevelName(settings.config.log_level))
    asyncio.run(main(args.company, args.currency, args.db))
