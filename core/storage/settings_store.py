"""
LedgerSettingsStore - per-company JSON settings records

Backs the `ledger_settings` table. The chart of accounts keeps its
category -> account maps here under the "ledgerMappings" key:

    {
        "expenseCategories": {"software": "<account_id>", ...},
        "incomeCategories": {...},
        "costOfGoodsCategories": {...}
    }

CategoryMappingRepository is the narrow interface the registry depends on;
SettingsCategoryMappingRepository implements it on top of this store.
"""

import json
import logging
from typing import Any, Protocol

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.types import LEDGER_MAPPINGS_KEY, MAPPING_FIELDS, CategoryKind
from core.utils.dates import now_iso

logger = logging.getLogger(__name__)


def normalize_category(category: str | None) -> str:
    """Lower-cased, trimmed, inner whitespace collapsed"""
    if not category:
        return ""
    return " ".join(str(category).split()).lower()


class LedgerSettingsStore:
    """Settings record store

    Args:
        db: SQLiteAdapter instance
        company_id: owning company

    Example:
    ```python
    store = LedgerSettingsStore(db, "acme")
    mappings = await store.get("ledgerMappings")
    await store.set("ledgerMappings", {"expenseCategories": {}})
    ```
    """

    def __init__(self, db: SQLiteAdapter, company_id: str):
        self.db = db
        self.company_id = company_id
        self._cache: dict[str, dict[str, Any]] = {}

    async def get(self, key: str, use_cache: bool = True) -> dict[str, Any]:
        """Read a settings record

        Args:
            key: settings key
            use_cache: serve from the in-process cache when present

        Returns:
            The stored value, or an empty dict when absent
        """
        if use_cache and key in self._cache:
            return dict(self._cache[key])

        row = await self.db.fetchone(
            """
            SELECT value_json
            FROM ledger_settings
            WHERE company_id = ? AND setting_key = ?
            """,
            (self.company_id, key),
        )

        if not row:
            return {}

        value = json.loads(row["value_json"])
        self._cache[key] = value
        return dict(value)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Write a settings record (UPSERT, version bumped on update)"""
        now = now_iso()
        value_json = json.dumps(value, ensure_ascii=False, sort_keys=True)

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO ledger_settings (company_id, setting_key, value_json, version, updated_at)
                VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(company_id, setting_key) DO UPDATE SET
                    value_json = excluded.value_json,
                    version = ledger_settings.version + 1,
                    updated_at = excluded.updated_at
                """,
                (self.company_id, key, value_json, now),
            )

        self._cache.pop(key, None)
        logger.debug(f"Ledger setting '{key}' updated", extra={"company_id": self.company_id})


class CategoryMappingRepository(Protocol):
    """category -> ledger account id lookup"""

    async def get(self, kind: CategoryKind, category: str) -> str | None:
        ...

    async def put(self, kind: CategoryKind, category: str, account_id: str) -> None:
        ...


class SettingsCategoryMappingRepository:
    """CategoryMappingRepository stored in the ledgerMappings settings record

    Categories are normalised before lookup, so "Software " and "software"
    share one account.
    """

    def __init__(self, settings: LedgerSettingsStore):
        self.settings = settings

    async def get(self, kind: CategoryKind, category: str) -> str | None:
        key = normalize_category(category)
        if not key:
            return None

        # always read through: the registry calls this inside its transaction
        mappings = await self.settings.get(LEDGER_MAPPINGS_KEY, use_cache=False)
        return mappings.get(MAPPING_FIELDS[CategoryKind(kind)], {}).get(key)

    async def put(self, kind: CategoryKind, category: str, account_id: str) -> None:
        key = normalize_category(category)
        if not key:
            raise ValueError("Cannot map a blank category")

        async with self.settings.db.transaction():
            mappings = await self.settings.get(LEDGER_MAPPINGS_KEY, use_cache=False)
            field = MAPPING_FIELDS[CategoryKind(kind)]
            section = dict(mappings.get(field, {}))
            section[key] = account_id
            mappings[field] = section
            await self.settings.set(LEDGER_MAPPINGS_KEY, mappings)

    async def all(self) -> dict[str, dict[str, str]]:
        """Full mapping record, keyed by the persisted field names"""
        mappings = await self.settings.get(LEDGER_MAPPINGS_KEY, use_cache=False)
        return {field: dict(mappings.get(field, {})) for field in MAPPING_FIELDS.values()}
