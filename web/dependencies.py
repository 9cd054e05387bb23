"""
Dependency injection

Dependencies managed through FastAPI's Depends.
"""

from typing import AsyncGenerator

from fastapi import Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.ledger.context import CompanyLedger


def get_app_settings() -> Settings:
    """Application settings"""
    return get_settings()


async def get_db() -> AsyncGenerator[SQLiteAdapter, None]:
    """Read-only DB session for the listing routes"""
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=True) as db:
        yield db


async def get_db_write() -> AsyncGenerator[SQLiteAdapter, None]:
    """Writable DB session (reversal and repair routes)"""
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=False) as db:
        yield db


def get_company_id(
    company_id: str | None = Query(default=None, description="Company (defaults to the configured one)"),
    settings: Settings = Depends(get_app_settings),
) -> str:
    return company_id or settings.default_company_id


async def get_ledger(
    db: SQLiteAdapter = Depends(get_db),
    company_id: str = Depends(get_company_id),
    settings: Settings = Depends(get_app_settings),
) -> CompanyLedger:
    """Company ledger on the read-only connection"""
    return CompanyLedger(db, company_id, settings.default_currency)


async def get_ledger_write(
    db: SQLiteAdapter = Depends(get_db_write),
    company_id: str = Depends(get_company_id),
    settings: Settings = Depends(get_app_settings),
) -> CompanyLedger:
    """Company ledger on a writable connection, system accounts seeded"""
    return await CompanyLedger.open(db, company_id, settings.default_currency)
