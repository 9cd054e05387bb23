"""
FinancialAccountStore - external bank/cash/card accounts

The ledger owns `current_balance` once an account is bound to its mirror:
only the entry engine and the repair toolkit write it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.errors import FinancialAccountNotFoundError
from core.types import FinancialAccountType
from core.utils.dates import now_iso
from core.utils.money import ZERO, money_str, to_money

logger = logging.getLogger(__name__)

_COLUMNS = """
    account_id, name, account_type, currency, initial_balance,
    current_balance, ledger_account_id, is_active, created_at, updated_at
"""


def _row_to_dict(row: Any) -> dict[str, Any]:
    return {
        "account_id": row["account_id"],
        "name": row["name"],
        "account_type": row["account_type"],
        "currency": row["currency"],
        "initial_balance": Decimal(row["initial_balance"]),
        "current_balance": Decimal(row["current_balance"]),
        "ledger_account_id": row["ledger_account_id"],
        "is_active": bool(row["is_active"]),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


class FinancialAccountStore:
    """External financial account records for one company

    Args:
        db: SQLiteAdapter instance
        company_id: owning company
    """

    def __init__(self, db: SQLiteAdapter, company_id: str):
        self.db = db
        self.company_id = company_id

    async def create(
        self,
        name: str,
        currency: str,
        initial_balance: Decimal | str | int = 0,
        account_type: FinancialAccountType | str = FinancialAccountType.BANK,
        account_id: str | None = None,
    ) -> dict[str, Any]:
        """Insert an account

        `current_balance` starts at 0; the opening entry posted through the
        ledger moves it to `initial_balance`.

        Returns:
            The stored account
        """
        account_id = account_id or str(uuid4())
        now = now_iso()

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO financial_account (
                    account_id, company_id, name, account_type, currency,
                    initial_balance, current_balance, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    self.company_id,
                    name,
                    FinancialAccountType(account_type).value,
                    currency,
                    money_str(to_money(initial_balance)),
                    money_str(ZERO),
                    now,
                    now,
                ),
            )

        logger.info(
            f"Financial account created: {name}",
            extra={"company_id": self.company_id, "account_id": account_id},
        )
        return await self.require(account_id)

    async def get(self, account_id: str) -> dict[str, Any] | None:
        row = await self.db.fetchone(
            f"SELECT {_COLUMNS} FROM financial_account WHERE company_id = ? AND account_id = ?",
            (self.company_id, account_id),
        )
        return _row_to_dict(row) if row else None

    async def require(self, account_id: str) -> dict[str, Any]:
        """get() that raises FinancialAccountNotFoundError"""
        account = await self.get(account_id)
        if account is None:
            raise FinancialAccountNotFoundError(account_id)
        return account

    async def list(self, include_inactive: bool = False) -> list[dict[str, Any]]:
        sql = f"SELECT {_COLUMNS} FROM financial_account WHERE company_id = ?"
        if not include_inactive:
            sql += " AND is_active = 1"
        rows = await self.db.fetchall(sql + " ORDER BY name, account_id", (self.company_id,))
        return [_row_to_dict(row) for row in rows]

    async def set_ledger_account(self, account_id: str, ledger_account_id: str | None) -> None:
        """Store (or clear) the mirror back-reference"""
        async with self.db.transaction():
            await self.db.execute(
                """
                UPDATE financial_account
                SET ledger_account_id = ?, updated_at = ?
                WHERE company_id = ? AND account_id = ?
                """,
                (ledger_account_id, now_iso(), self.company_id, account_id),
            )

    async def overwrite_balance(self, account_id: str, balance: Decimal) -> None:
        """Replace current_balance (recalculation only)"""
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE financial_account
                SET current_balance = ?, updated_at = ?
                WHERE company_id = ? AND account_id = ?
                """,
                (money_str(balance), now_iso(), self.company_id, account_id),
            )
            if cursor.rowcount == 0:
                raise FinancialAccountNotFoundError(account_id)
