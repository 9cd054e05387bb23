"""
SourceRecordStore - expense and income records

Plain CRUD over the `source_record` table. Posting to the ledger is done by
the binding layer (core.ledger.binding), which is the only caller that
writes `ledger_entry_id`.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.errors import RecordNotFoundError
from core.storage.settings_store import normalize_category
from core.types import DocumentType, PaymentStatus, SourceKind
from core.utils.dates import now_iso, to_date_str
from core.utils.money import money_str, to_money

logger = logging.getLogger(__name__)

_COLUMNS = """
    record_id, kind, record_date, amount, currency, category, counterparty,
    description, payment_status, financial_account_id, paid_date,
    document_type, ledger_entry_id, created_by, updated_by, created_at, updated_at
"""

# Columns a patch may change
UPDATABLE_FIELDS: tuple[str, ...] = (
    "record_date",
    "amount",
    "currency",
    "category",
    "counterparty",
    "description",
    "payment_status",
    "financial_account_id",
    "paid_date",
    "document_type",
)


def _row_to_dict(row: Any) -> dict[str, Any]:
    return {
        "record_id": row["record_id"],
        "kind": row["kind"],
        "record_date": row["record_date"],
        "amount": Decimal(row["amount"]),
        "currency": row["currency"],
        "category": row["category"],
        "counterparty": row["counterparty"],
        "description": row["description"],
        "payment_status": row["payment_status"],
        "financial_account_id": row["financial_account_id"],
        "paid_date": row["paid_date"],
        "document_type": row["document_type"],
        "ledger_entry_id": row["ledger_entry_id"],
        "created_by": row["created_by"],
        "updated_by": row["updated_by"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Coerce user-supplied values to their stored form

    Unknown keys are dropped. Raises ValueError on bad amounts, dates or
    document types.
    """
    normalized: dict[str, Any] = {}

    for key, value in fields.items():
        if key not in UPDATABLE_FIELDS:
            continue

        if key == "amount":
            value = to_money(value)
        elif key == "record_date":
            value = to_date_str(value)
        elif key == "paid_date":
            value = to_date_str(value) if value else None
        elif key == "payment_status":
            value = str(value).strip().lower() if value else None
        elif key == "document_type":
            value = DocumentType(value or DocumentType.STANDARD).value
        elif key == "financial_account_id":
            value = value or None

        normalized[key] = value

    return normalized


class SourceRecordStore:
    """Expense/income records for one company

    Args:
        db: SQLiteAdapter instance
        company_id: owning company

    Example:
    ```python
    records = SourceRecordStore(db, "acme")
    expense = await records.create(SourceKind.EXPENSE, {"amount": "50", "category": "Travel"})
    await records.update(expense["record_id"], {"amount": "80"})
    ```
    """

    def __init__(self, db: SQLiteAdapter, company_id: str):
        self.db = db
        self.company_id = company_id

    async def create(
        self,
        kind: SourceKind | str,
        fields: dict[str, Any],
        actor: str | None = None,
        record_id: str | None = None,
    ) -> dict[str, Any]:
        """Insert a record

        Raises:
            ValueError: amount is negative or a value cannot be parsed
        """
        kind = SourceKind(kind)
        values = normalize_fields(fields)
        amount = values.get("amount", Decimal("0"))
        if amount < 0:
            raise ValueError("Amount must not be negative")
        if not values.get("currency"):
            raise ValueError("Currency is required")

        record_id = record_id or str(uuid4())
        now = now_iso()

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO source_record (
                    record_id, company_id, kind, record_date, amount, currency,
                    category, counterparty, description, payment_status,
                    financial_account_id, paid_date, document_type,
                    created_by, updated_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    self.company_id,
                    kind.value,
                    values.get("record_date") or to_date_str(None),
                    money_str(amount),
                    values["currency"],
                    values.get("category"),
                    values.get("counterparty"),
                    values.get("description"),
                    values.get("payment_status"),
                    values.get("financial_account_id"),
                    values.get("paid_date"),
                    values.get("document_type", DocumentType.STANDARD.value),
                    actor,
                    actor,
                    now,
                    now,
                ),
            )

        logger.debug(
            f"{kind.value} record created",
            extra={"company_id": self.company_id, "record_id": record_id},
        )
        return await self.require(record_id)

    async def get(self, record_id: str) -> dict[str, Any] | None:
        row = await self.db.fetchone(
            f"SELECT {_COLUMNS} FROM source_record WHERE company_id = ? AND record_id = ?",
            (self.company_id, record_id),
        )
        return _row_to_dict(row) if row else None

    async def require(self, record_id: str) -> dict[str, Any]:
        """get() that raises RecordNotFoundError"""
        record = await self.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def update(
        self,
        record_id: str,
        patch: dict[str, Any],
        actor: str | None = None,
    ) -> dict[str, Any]:
        """Apply a patch (only UPDATABLE_FIELDS are written)

        Returns:
            The record after the update
        """
        values = normalize_fields(patch)
        if "amount" in values:
            if values["amount"] < 0:
                raise ValueError("Amount must not be negative")
            values["amount"] = money_str(values["amount"])

        assignments = [f"{column} = ?" for column in values]
        params: list[Any] = list(values.values())
        assignments += ["updated_by = ?", "updated_at = ?"]
        params += [actor, now_iso(), self.company_id, record_id]

        async with self.db.transaction():
            cursor = await self.db.execute(
                f"UPDATE source_record SET {', '.join(assignments)} "
                "WHERE company_id = ? AND record_id = ?",
                tuple(params),
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError(record_id)

        return await self.require(record_id)

    async def set_ledger_entry_id(self, record_id: str, entry_id: str | None) -> None:
        async with self.db.transaction():
            await self.db.execute(
                """
                UPDATE source_record SET ledger_entry_id = ?, updated_at = ?
                WHERE company_id = ? AND record_id = ?
                """,
                (entry_id, now_iso(), self.company_id, record_id),
            )

    async def delete(self, record_id: str) -> bool:
        """Hard delete; returns False when the record did not exist"""
        async with self.db.transaction():
            cursor = await self.db.execute(
                "DELETE FROM source_record WHERE company_id = ? AND record_id = ?",
                (self.company_id, record_id),
            )
        return cursor.rowcount > 0

    async def list(
        self,
        kind: SourceKind | str | None = None,
        financial_account_id: str | None = None,
    ) -> list[dict[str, Any]]:
        sql = f"SELECT {_COLUMNS} FROM source_record WHERE company_id = ?"
        params: list[Any] = [self.company_id]

        if kind is not None:
            sql += " AND kind = ?"
            params.append(SourceKind(kind).value)
        if financial_account_id is not None:
            sql += " AND financial_account_id = ?"
            params.append(financial_account_id)

        rows = await self.db.fetchall(sql + " ORDER BY record_date, created_at", tuple(params))
        return [_row_to_dict(row) for row in rows]

    async def list_paid_without_account(self) -> list[dict[str, Any]]:
        """Paid expenses lacking a financial account link"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_COLUMNS} FROM source_record
            WHERE company_id = ? AND kind = ?
              AND LOWER(TRIM(COALESCE(payment_status, ''))) = ?
              AND (financial_account_id IS NULL OR financial_account_id = '')
            ORDER BY record_date, created_at
            """,
            (self.company_id, SourceKind.EXPENSE.value, PaymentStatus.PAID.value),
        )
        return [_row_to_dict(row) for row in rows]

    async def list_unposted(self) -> list[dict[str, Any]]:
        """Non-zero records without a linked ledger entry"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_COLUMNS} FROM source_record
            WHERE company_id = ? AND ledger_entry_id IS NULL
            ORDER BY record_date, created_at
            """,
            (self.company_id,),
        )
        return [record for record in map(_row_to_dict, rows) if record["amount"] != 0]

    async def list_by_category(self, kind: SourceKind | str, category: str) -> list[dict[str, Any]]:
        """Records whose normalised category matches"""
        wanted = normalize_category(category)
        return [
            record
            for record in await self.list(kind=kind)
            if normalize_category(record["category"]) == wanted
        ]
