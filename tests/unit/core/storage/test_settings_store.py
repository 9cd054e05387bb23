"""
LedgerSettingsStore tests

ledger_settings CRUD and the category mapping repository
"""

from typing import AsyncGenerator

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.ledger.types import CategoryKind
from core.storage.settings_store import (
    LedgerSettingsStore,
    SettingsCategoryMappingRepository,
    normalize_category,
)


@pytest.fixture
async def db() -> AsyncGenerator[SQLiteAdapter, None]:
    """In-memory DB"""
    adapter = SQLiteAdapter(":memory:")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
async def settings(db: SQLiteAdapter) -> LedgerSettingsStore:
    return LedgerSettingsStore(db, "acme")


class TestNormalizeCategory:
    """normalize_category tests"""

    def test_normalises(self) -> None:
        assert normalize_category("  Office   Supplies ") == "office supplies"

    def test_blank(self) -> None:
        assert normalize_category(None) == ""
        assert normalize_category("   ") == ""


class TestLedgerSettingsStore:
    """get() / set() tests"""

    @pytest.mark.asyncio
    async def test_missing_key_is_empty(self, settings: LedgerSettingsStore) -> None:
        assert await settings.get("ledgerMappings") == {}

    @pytest.mark.asyncio
    async def test_round_trip(self, settings: LedgerSettingsStore) -> None:
        await settings.set("ledgerMappings", {"expenseCategories": {"travel": "acc-1"}})

        assert await settings.get("ledgerMappings") == {"expenseCategories": {"travel": "acc-1"}}

    @pytest.mark.asyncio
    async def test_version_bumped(self, db: SQLiteAdapter, settings: LedgerSettingsStore) -> None:
        await settings.set("k", {"a": 1})
        await settings.set("k", {"a": 2})

        row = await db.fetchone("SELECT version FROM ledger_settings WHERE company_id = 'acme' AND setting_key = 'k'")
        assert row["version"] == 2

    @pytest.mark.asyncio
    async def test_set_invalidates_cache(self, settings: LedgerSettingsStore) -> None:
        await settings.set("k", {"a": 1})
        assert await settings.get("k") == {"a": 1}

        await settings.set("k", {"a": 2})

        assert await settings.get("k") == {"a": 2}

    @pytest.mark.asyncio
    async def test_companies_isolated(self, db: SQLiteAdapter, settings: LedgerSettingsStore) -> None:
        await settings.set("k", {"a": 1})

        assert await LedgerSettingsStore(db, "globex").get("k") == {}

    @pytest.mark.asyncio
    async def test_returned_value_is_a_copy(self, settings: LedgerSettingsStore) -> None:
        await settings.set("k", {"a": 1})
        value = await settings.get("k")
        value["a"] = 99

        assert await settings.get("k") == {"a": 1}


class TestSettingsCategoryMappingRepository:
    """Category mapping tests"""

    @pytest.mark.asyncio
    async def test_put_and_get(self, settings: LedgerSettingsStore) -> None:
        repo = SettingsCategoryMappingRepository(settings)

        await repo.put(CategoryKind.EXPENSE, "Travel ", "acc-1")

        assert await repo.get(CategoryKind.EXPENSE, "travel") == "acc-1"
        assert await repo.get(CategoryKind.INCOME, "travel") is None

    @pytest.mark.asyncio
    async def test_put_keeps_other_entries(self, settings: LedgerSettingsStore) -> None:
        repo = SettingsCategoryMappingRepository(settings)

        await repo.put(CategoryKind.EXPENSE, "Travel", "acc-1")
        await repo.put(CategoryKind.EXPENSE, "Meals", "acc-2")
        await repo.put(CategoryKind.INCOME, "Sales", "acc-3")

        mappings = await repo.all()
        assert mappings["expenseCategories"] == {"travel": "acc-1", "meals": "acc-2"}
        assert mappings["incomeCategories"] == {"sales": "acc-3"}
        assert mappings["costOfGoodsCategories"] == {}

    @pytest.mark.asyncio
    async def test_blank_category(self, settings: LedgerSettingsStore) -> None:
        repo = SettingsCategoryMappingRepository(settings)

        assert await repo.get(CategoryKind.EXPENSE, "") is None
        with pytest.raises(ValueError):
            await repo.put(CategoryKind.EXPENSE, "  ", "acc-1")
