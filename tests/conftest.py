"""
Shared pytest fixtures

Each test gets its own SQLite file with the full schema and one company
("acme", EUR) whose system accounts are seeded.
"""

import tempfile
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import Settings
from core.ledger.context import CompanyLedger


@pytest.fixture
def temp_dir() -> Path:
    """OS-independent temporary directory"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger.db"


@pytest_asyncio.fixture
async def db(db_path: Path) -> SQLiteAdapter:
    """Connected adapter with the schema created"""
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def company(db: SQLiteAdapter) -> CompanyLedger:
    """Company ledger with seeded system accounts"""
    return await CompanyLedger.open(db, "acme", "EUR")


@pytest_asyncio.fixture
async def bank(company: CompanyLedger) -> dict[str, Any]:
    """Bank account opened at 200.00"""
    result = await company.binding.open_financial_account("Main bank", "EUR", "200.00")
    assert result.ok
    return await company.financial_accounts.require(result.record_id)


@pytest.fixture(autouse=True)
def reset_settings() -> None:
    """Settings is a process-wide singleton"""
    Settings.reset()
    yield
    Settings.reset()
