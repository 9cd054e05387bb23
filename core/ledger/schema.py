"""
Double-entry schema initialisation

Creates the ledger tables and views at start-up of the web app and the CLI.
CREATE IF NOT EXISTS / DROP VIEW IF EXISTS keep it safe to re-run.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """Initialise the ledger schema (tables + views)

    Args:
        db: SQLiteAdapter instance
    """
    await _create_ledger_tables(db)
    await _create_ledger_views(db)
    logger.info("Ledger schema initialised")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """Create ledger tables"""

    # ledger_account (chart of accounts with running totals)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_account (
            account_id                   TEXT NOT NULL,
            company_id                   TEXT NOT NULL,
            code                         TEXT NOT NULL,
            name                         TEXT NOT NULL,
            account_type                 TEXT NOT NULL,
            normal_balance               TEXT NOT NULL,
            currency                     TEXT NOT NULL,
            balance                      TEXT NOT NULL DEFAULT '0',
            debit_total                  TEXT NOT NULL DEFAULT '0',
            credit_total                 TEXT NOT NULL DEFAULT '0',
            is_system                    INTEGER NOT NULL DEFAULT 0,
            is_active                    INTEGER NOT NULL DEFAULT 1,
            linked_external_account_id   TEXT,
            category                     TEXT,
            description                  TEXT,
            archived_reason              TEXT,
            created_at                   TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at                   TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (company_id, account_id),
            UNIQUE (company_id, code)
        )
    """)

    # ledger_entry (append-only; reversal flags are set in place)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_entry (
            entry_id           TEXT PRIMARY KEY,
            company_id         TEXT NOT NULL,
            entry_date         TEXT NOT NULL,
            description        TEXT NOT NULL,
            total_debit        TEXT NOT NULL,
            total_credit       TEXT NOT NULL,
            source_id          TEXT,
            source_type        TEXT NOT NULL,
            currency           TEXT NOT NULL,
            is_reversal        INTEGER NOT NULL DEFAULT 0,
            reverses_entry_id  TEXT,
            reversed           INTEGER NOT NULL DEFAULT 0,
            reversal_entry_id  TEXT,
            reversed_at        TEXT,
            reversed_by        TEXT,
            reversal_reason    TEXT,
            created_by         TEXT,
            created_at         TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # ledger_line
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_line (
            line_id              INTEGER PRIMARY KEY AUTOINCREMENT,
            entry_id             TEXT NOT NULL,
            company_id           TEXT NOT NULL,
            account_id           TEXT NOT NULL,
            debit                TEXT NOT NULL DEFAULT '0',
            credit               TEXT NOT NULL DEFAULT '0',
            currency             TEXT NOT NULL,
            external_account_id  TEXT,
            metadata_json        TEXT,
            line_order           INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (entry_id) REFERENCES ledger_entry(entry_id),
            FOREIGN KEY (company_id, account_id) REFERENCES ledger_account(company_id, account_id)
        )
    """)

    # ledger_settings (JSON records, e.g. ledgerMappings)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_settings (
            company_id    TEXT NOT NULL,
            setting_key   TEXT NOT NULL,
            value_json    TEXT NOT NULL,
            version       INTEGER NOT NULL DEFAULT 1,
            updated_at    TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (company_id, setting_key)
        )
    """)

    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_account_type ON ledger_account(company_id, account_type)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_entry_company ON ledger_entry(company_id, entry_date)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_entry_source ON ledger_entry(company_id, source_type, source_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_line_entry ON ledger_line(entry_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_line_account ON ledger_line(company_id, account_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_line_external ON ledger_line(company_id, external_account_id)")

    await db.commit()
    logger.debug("Ledger tables created")


async def _create_ledger_views(db: "SQLiteAdapter") -> None:
    """Create read views

    Views are always dropped and recreated so schema changes are picked up.
    """

    # per-account line history with the owning entry's header
    await db.execute("DROP VIEW IF EXISTS v_account_ledger")
    await db.execute("""
        CREATE VIEW v_account_ledger AS
        SELECT
            jl.company_id,
            jl.account_id,
            je.entry_id,
            je.entry_date,
            je.description,
            je.source_type,
            je.source_id,
            je.is_reversal,
            je.reversed,
            jl.debit,
            jl.credit,
            jl.currency,
            jl.external_account_id,
            jl.line_order
        FROM ledger_line jl
        JOIN ledger_entry je ON je.entry_id = jl.entry_id
    """)

    await db.commit()
    logger.debug("Ledger views created")
