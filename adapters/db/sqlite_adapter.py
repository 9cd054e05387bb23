"""
SQLite adapter

Manages the SQLite connection in WAL mode so the web app and the CLI
scripts can use the same database file concurrently.

Transactions are explicit: the connection runs in autocommit mode and
every multi-statement write goes through transaction()/run_transaction(),
which take the database write lock up front with BEGIN IMMEDIATE.
"""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import aiosqlite

from core.constants import TransactionRetry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


class TransactionConflictError(Exception):
    """A write transaction could not acquire the database

    Raised once the retry budget for a locked/busy database is exhausted.
    The caller may retry the whole logical operation.
    """

    def __init__(self, attempts: int, message: str = "Transaction conflict"):
        self.attempts = attempts
        self.message = message
        super().__init__(f"{message} after {attempts} attempt(s)")


def is_busy_error(error: BaseException) -> bool:
    """True when a sqlite3 error means another writer holds the lock"""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    text = str(error).lower()
    return any(marker in text for marker in _BUSY_MARKERS)


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """Create a SQLite connection (WAL mode)

    Args:
        db_path: DB file path (":memory:" for an in-memory database)
        readonly: open read-only

    Returns:
        aiosqlite connection
    """
    db_path_str = str(db_path)
    in_memory = db_path_str == ":memory:"

    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    if readonly and not in_memory:
        conn = await aiosqlite.connect(
            f"file:{db_path_str}?mode=ro", uri=True, isolation_level=None
        )
    else:
        conn = await aiosqlite.connect(db_path_str, isolation_level=None)

    conn.row_factory = aiosqlite.Row

    if not in_memory:
        await conn.execute("PRAGMA journal_mode=WAL")

    await conn.execute(f"PRAGMA busy_timeout={TransactionRetry.BUSY_TIMEOUT_MS}")
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite connection created",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite adapter

    Manages the WAL-mode connection and provides the transaction context
    manager used by every ledger write.

    Args:
        db_path: DB file path
        readonly: read-only connection (web read routes)

    Example:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        """Connection state"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """True when the current task owns the open transaction"""
        return self._tx_owner is not None and self._tx_owner is asyncio.current_task()

    async def connect(self) -> None:
        """Open the connection"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        """Close the connection"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite connection closed")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """Execute SQL"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """Execute SQL for many parameter sets"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        return await self._conn.executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Row | None:
        """Fetch a single row"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[aiosqlite.Row]:
        """Fetch all rows"""
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """Commit"""
        if self._conn is not None:
            await self._conn.commit()

    async def rollback(self) -> None:
        """Rollback"""
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Transaction context manager

        Commits on success, rolls back on any exception. Transactions on
        this connection are serialised; a nested transaction() from the
        task that already owns the open transaction joins it.

        Example:
        ```python
        async with adapter.transaction():
            await adapter.execute("UPDATE ...")
            # committed on exit
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if self.in_transaction:
            yield self._conn
            return

        async with self._tx_lock:
            self._tx_owner = asyncio.current_task()
            try:
                await self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self._conn
                    await self._conn.commit()
                except BaseException:
                    await self._conn.rollback()
                    raise
            finally:
                self._tx_owner = None

    async def run_transaction(
        self,
        work: Callable[[], Awaitable[T]],
        max_attempts: int = TransactionRetry.MAX_ATTEMPTS,
    ) -> T:
        """Run a unit of work in one transaction, retrying on lock conflicts

        The whole unit is re-run from the start on each attempt, so `work`
        must do its reads inside the transaction.

        Args:
            work: coroutine function performing the reads and writes
            max_attempts: attempts before giving up

        Returns:
            The value returned by `work`

        Raises:
            TransactionConflictError: the database stayed locked
        """
        if self.in_transaction:
            return await work()

        for attempt in range(max_attempts):
            try:
                async with self.transaction():
                    return await work()
            except sqlite3.OperationalError as e:
                if not is_busy_error(e):
                    raise

                logger.warning(
                    "Database busy, retrying transaction",
                    extra={"attempt": attempt + 1, "error": str(e)},
                )
                if attempt < max_attempts - 1:
                    await asyncio.sleep(TransactionRetry.BACKOFF_SEC * (attempt + 1))
                    continue

                raise TransactionConflictError(attempts=max_attempts) from e

        raise TransactionConflictError(attempts=max_attempts)

    async def table_exists(self, table_name: str) -> bool:
        """Check whether a table exists"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # context manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """Initialise the schema (create tables)

    Creates the business record tables and then the ledger tables.
    Safe to run on every start-up.

    Args:
        adapter: connected SQLiteAdapter
    """
    from core.ledger.schema import init_ledger_schema

    # financial_account (external bank/cash/card accounts)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS financial_account (
            account_id        TEXT NOT NULL,
            company_id        TEXT NOT NULL,
            name              TEXT NOT NULL,
            account_type      TEXT NOT NULL DEFAULT 'bank',
            currency          TEXT NOT NULL,
            initial_balance   TEXT NOT NULL DEFAULT '0',
            current_balance   TEXT NOT NULL DEFAULT '0',
            ledger_account_id TEXT,
            is_active         INTEGER NOT NULL DEFAULT 1,
            created_at        TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at        TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (company_id, account_id)
        )
    """)

    # source_record (expenses and income)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS source_record (
            record_id            TEXT NOT NULL,
            company_id           TEXT NOT NULL,
            kind                 TEXT NOT NULL,
            record_date          TEXT NOT NULL,
            amount               TEXT NOT NULL,
            currency             TEXT NOT NULL,
            category             TEXT,
            counterparty         TEXT,
            description          TEXT,
            payment_status       TEXT,
            financial_account_id TEXT,
            paid_date            TEXT,
            document_type        TEXT NOT NULL DEFAULT 'standard',
            ledger_entry_id      TEXT,
            created_by           TEXT,
            updated_by           TEXT,
            created_at           TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at           TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (company_id, record_id)
        )
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_source_record_kind
        ON source_record(company_id, kind)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_source_record_account
        ON source_record(company_id, financial_account_id)
    """)

    await adapter.commit()

    await init_ledger_schema(adapter)

    logger.info("Schema initialised")
