"""
Chart of accounts

Owns the ledger_account rows of one company: the seeded system accounts,
code allocation inside each type's band, category accounts provisioned on
first use and the 1:1 mirrors of external financial accounts.
"""

from __future__ import annotations

import logging
import sqlite3
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from core.constants import Defaults, Tolerances
from core.ledger.errors import LedgerValidationError, UnknownAccountError
from core.ledger.types import (
    ACCOUNT_CODE_BANDS,
    CATEGORY_ACCOUNT_TYPES,
    DEFAULT_CATEGORY_ACCOUNTS,
    SYSTEM_ACCOUNTS,
    AccountType,
    CategoryKind,
    NormalBalance,
    normal_balance_for,
)
from core.storage.financial_account_store import FinancialAccountStore
from core.storage.settings_store import (
    CategoryMappingRepository,
    LedgerSettingsStore,
    SettingsCategoryMappingRepository,
    normalize_category,
)
from core.utils.dates import now_iso
from core.utils.money import ZERO

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

_COLUMNS = """
    account_id, code, name, account_type, normal_balance, currency,
    balance, debit_total, credit_total, is_system, is_active,
    linked_external_account_id, category, description, archived_reason,
    created_at, updated_at
"""

# Fields update_account() may change
_UPDATABLE_FIELDS = ("code", "name", "currency", "description", "category", "is_active")


def account_from_row(row: Any) -> dict[str, Any]:
    """ledger_account row -> dict with Decimal amounts"""
    return {
        "account_id": row["account_id"],
        "code": row["code"],
        "name": row["name"],
        "account_type": row["account_type"],
        "normal_balance": row["normal_balance"],
        "currency": row["currency"],
        "balance": Decimal(row["balance"]),
        "debit_total": Decimal(row["debit_total"]),
        "credit_total": Decimal(row["credit_total"]),
        "is_system": bool(row["is_system"]),
        "is_active": bool(row["is_active"]),
        "linked_external_account_id": row["linked_external_account_id"],
        "category": row["category"],
        "description": row["description"],
        "archived_reason": row["archived_reason"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def _code_in_band(code: str, account_type: AccountType) -> bool:
    low, high = ACCOUNT_CODE_BANDS[account_type]
    return code.isdigit() and low <= int(code) <= high


class ChartOfAccounts:
    """Ledger account registry for one company

    Args:
        db: SQLiteAdapter instance
        company_id: owning company
        currency: currency of accounts created without an explicit one
        mappings: category -> account repository (settings-backed by default)
        financial_accounts: external account store (for mirrors)

    Example:
    ```python
    chart = ChartOfAccounts(db, "acme")
    await chart.ensure_system_accounts()
    travel_id = await chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel")
    ```
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        company_id: str,
        currency: str = Defaults.CURRENCY,
        mappings: CategoryMappingRepository | None = None,
        financial_accounts: FinancialAccountStore | None = None,
    ):
        self.db = db
        self.company_id = company_id
        self.currency = currency
        self.mappings = mappings or SettingsCategoryMappingRepository(
            LedgerSettingsStore(db, company_id)
        )
        self.financial_accounts = financial_accounts or FinancialAccountStore(db, company_id)

    # -------------------------------------------------------------------------
    # system accounts / codes
    # -------------------------------------------------------------------------

    async def ensure_system_accounts(self) -> list[str]:
        """Seed the system accounts that are missing

        Check-then-create per account id, so it is safe on every call.

        Returns:
            Ids of the accounts created by this call
        """
        created: list[str] = []

        async def work() -> None:
            for spec in SYSTEM_ACCOUNTS:
                if await self.get_account(spec.account_id) is not None:
                    continue

                code = spec.code
                if await self._code_taken(code):
                    code = await self.next_account_code(spec.account_type)

                await self._insert_account(
                    account_id=spec.account_id,
                    code=code,
                    name=spec.name,
                    account_type=spec.account_type,
                    currency=self.currency,
                    is_system=True,
                )
                created.append(spec.account_id)

        await self.db.run_transaction(work)

        if created:
            logger.info(
                f"Seeded {len(created)} system account(s)",
                extra={"company_id": self.company_id, "accounts": created},
            )
        return created

    async def next_account_code(self, account_type: AccountType | str) -> str:
        """Next free code inside the band of `account_type`

        Highest code in the band + 1, or the band minimum when the band is
        empty.

        Raises:
            LedgerValidationError: the band is full
        """
        account_type = AccountType(account_type)
        low, high = ACCOUNT_CODE_BANDS[account_type]

        rows = await self.db.fetchall(
            "SELECT code FROM ledger_account WHERE company_id = ?",
            (self.company_id,),
        )
        used = [int(row["code"]) for row in rows if row["code"].isdigit()]
        in_band = [code for code in used if low <= code <= high]

        candidate = max(in_band) + 1 if in_band else low
        if candidate > high:
            raise LedgerValidationError(
                f"No free account code left for {account_type.value} ({low}-{high})"
            )
        return str(candidate)

    async def _code_taken(self, code: str) -> bool:
        row = await self.db.fetchone(
            "SELECT 1 FROM ledger_account WHERE company_id = ? AND code = ?",
            (self.company_id, code),
        )
        return row is not None

    # -------------------------------------------------------------------------
    # mutation
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        account_type: AccountType | str,
        code: str | None = None,
        currency: str | None = None,
        account_id: str | None = None,
        category: str | None = None,
        description: str | None = None,
        linked_external_account_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a (non-system) ledger account

        Raises:
            LedgerValidationError: code outside the type's band or already used
        """
        account_type = AccountType(account_type)
        if not name or not name.strip():
            raise LedgerValidationError("Account name is required")

        async def work() -> str:
            account_code = code or await self.next_account_code(account_type)
            if not _code_in_band(account_code, account_type):
                low, high = ACCOUNT_CODE_BANDS[account_type]
                raise LedgerValidationError(
                    f"Code {account_code} is outside the {account_type.value} band ({low}-{high})"
                )
            if await self._code_taken(account_code):
                raise LedgerValidationError(f"Account code already in use: {account_code}")

            return await self._insert_account(
                account_id=account_id or str(uuid4()),
                code=account_code,
                name=name.strip(),
                account_type=account_type,
                currency=currency or self.currency,
                category=category,
                description=description,
                linked_external_account_id=linked_external_account_id,
            )

        new_id = await self.db.run_transaction(work)
        logger.info(
            f"Ledger account created: {name}",
            extra={"company_id": self.company_id, "account_id": new_id, "type": account_type.value},
        )
        return await self.require_account(new_id)

    async def _insert_account(
        self,
        account_id: str,
        code: str,
        name: str,
        account_type: AccountType,
        currency: str,
        is_system: bool = False,
        category: str | None = None,
        description: str | None = None,
        linked_external_account_id: str | None = None,
    ) -> str:
        now = now_iso()
        try:
            await self.db.execute(
                """
                INSERT INTO ledger_account (
                    account_id, company_id, code, name, account_type, normal_balance,
                    currency, is_system, category, description,
                    linked_external_account_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    self.company_id,
                    code,
                    name,
                    account_type.value,
                    normal_balance_for(account_type).value,
                    currency,
                    int(is_system),
                    category,
                    description,
                    linked_external_account_id,
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise LedgerValidationError(f"Cannot create account {account_id}: {e}") from e
        return account_id

    async def update_account(self, account_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Patch name/code/currency/description/category/is_active

        Raises:
            UnknownAccountError: no such account
            LedgerValidationError: type change requested or invalid code
        """
        if "account_type" in patch or "normal_balance" in patch:
            raise LedgerValidationError("Account type cannot be changed")

        values = {key: value for key, value in patch.items() if key in _UPDATABLE_FIELDS}

        async def work() -> None:
            account = await self.require_account(account_id)

            if "code" in values and values["code"] != account["code"]:
                if not _code_in_band(str(values["code"]), AccountType(account["account_type"])):
                    raise LedgerValidationError(f"Code {values['code']} is outside the account's band")
                if await self._code_taken(str(values["code"])):
                    raise LedgerValidationError(f"Account code already in use: {values['code']}")

            if "is_active" in values:
                if account["is_system"] and not values["is_active"]:
                    raise LedgerValidationError("System accounts cannot be deactivated")
                values["is_active"] = int(bool(values["is_active"]))

            assignments = [f"{column} = ?" for column in values] + ["updated_at = ?"]
            params = [*values.values(), now_iso(), self.company_id, account_id]
            await self.db.execute(
                f"UPDATE ledger_account SET {', '.join(assignments)} "
                "WHERE company_id = ? AND account_id = ?",
                tuple(params),
            )

        await self.db.run_transaction(work)
        return await self.require_account(account_id)

    async def archive_account(self, account_id: str, reason: str | None = None) -> dict[str, Any]:
        """Deactivate an account and clear its external link

        The financial account that pointed at it loses its back-reference,
        so its next posting provisions a fresh mirror.

        Raises:
            UnknownAccountError: no such account
            LedgerValidationError: system account
        """

        async def work() -> None:
            account = await self.require_account(account_id)
            if account["is_system"]:
                raise LedgerValidationError(f"System account cannot be archived: {account_id}")

            await self.db.execute(
                """
                UPDATE ledger_account
                SET is_active = 0, archived_reason = ?, linked_external_account_id = NULL,
                    updated_at = ?
                WHERE company_id = ? AND account_id = ?
                """,
                (reason, now_iso(), self.company_id, account_id),
            )
            await self.db.execute(
                """
                UPDATE financial_account
                SET ledger_account_id = NULL, updated_at = ?
                WHERE company_id = ? AND ledger_account_id = ?
                """,
                (now_iso(), self.company_id, account_id),
            )

        await self.db.run_transaction(work)
        logger.info(
            f"Ledger account archived: {account_id}",
            extra={"company_id": self.company_id, "reason": reason},
        )
        return await self.require_account(account_id)

    # -------------------------------------------------------------------------
    # provisioning
    # -------------------------------------------------------------------------

    async def get_or_create_category_account(
        self,
        kind: CategoryKind | str,
        category: str | None,
        currency: str | None = None,
    ) -> str:
        """Account id for a category, created on first use

        Blank categories map to the kind's default system account. A stale
        mapping (account gone or archived) is replaced.
        """
        kind = CategoryKind(kind)
        key = normalize_category(category)

        if not key:
            await self.ensure_system_accounts()
            return DEFAULT_CATEGORY_ACCOUNTS[kind]

        account_type = CATEGORY_ACCOUNT_TYPES[kind]

        async def work() -> str:
            mapped = await self.mappings.get(kind, key)
            if mapped and await self._is_active(mapped):
                return mapped

            # same category already provisioned but the mapping was lost
            row = await self.db.fetchone(
                """
                SELECT account_id FROM ledger_account
                WHERE company_id = ? AND account_type = ? AND category = ? AND is_active = 1
                ORDER BY code LIMIT 1
                """,
                (self.company_id, account_type.value, key),
            )
            if row:
                account_id = row["account_id"]
            else:
                account_id = await self._insert_account(
                    account_id=str(uuid4()),
                    code=await self.next_account_code(account_type),
                    name=" ".join(str(category).split()),
                    account_type=account_type,
                    currency=currency or self.currency,
                    category=key,
                )
                logger.info(
                    f"Provisioned {kind.value} account for category '{key}'",
                    extra={"company_id": self.company_id, "account_id": account_id},
                )

            await self.mappings.put(kind, key, account_id)
            return account_id

        return await self.db.run_transaction(work)

    async def get_or_create_external_account_mirror(self, external_account_id: str) -> str:
        """Ledger mirror (asset account) of an external financial account

        Raises:
            FinancialAccountNotFoundError: unknown external account
        """

        async def work() -> str:
            external = await self.financial_accounts.require(external_account_id)
            mirror_id = external["ledger_account_id"]
            if mirror_id and await self._is_active(mirror_id):
                return mirror_id

            mirror_id = await self._insert_account(
                account_id=str(uuid4()),
                code=await self.next_account_code(AccountType.ASSET),
                name=external["name"],
                account_type=AccountType.ASSET,
                currency=external["currency"],
                linked_external_account_id=external_account_id,
                description=f"Ledger mirror of financial account {external_account_id}",
            )
            await self.financial_accounts.set_ledger_account(external_account_id, mirror_id)
            logger.info(
                f"Mirror account created for financial account {external_account_id}",
                extra={"company_id": self.company_id, "account_id": mirror_id},
            )
            return mirror_id

        return await self.db.run_transaction(work)

    # -------------------------------------------------------------------------
    # read
    # -------------------------------------------------------------------------

    async def get_account(self, account_id: str) -> dict[str, Any] | None:
        row = await self.db.fetchone(
            f"SELECT {_COLUMNS} FROM ledger_account WHERE company_id = ? AND account_id = ?",
            (self.company_id, account_id),
        )
        return account_from_row(row) if row else None

    async def require_account(self, account_id: str) -> dict[str, Any]:
        """get_account() that raises UnknownAccountError"""
        account = await self.get_account(account_id)
        if account is None:
            raise UnknownAccountError(account_id)
        return account

    async def _is_active(self, account_id: str) -> bool:
        account = await self.get_account(account_id)
        return account is not None and account["is_active"]

    async def list_accounts(
        self,
        account_type: AccountType | str | None = None,
        include_inactive: bool = False,
    ) -> list[dict[str, Any]]:
        sql = f"SELECT {_COLUMNS} FROM ledger_account WHERE company_id = ?"
        params: list[Any] = [self.company_id]

        if account_type is not None:
            sql += " AND account_type = ?"
            params.append(AccountType(account_type).value)
        if not include_inactive:
            sql += " AND is_active = 1"

        rows = await self.db.fetchall(sql + " ORDER BY code", tuple(params))
        return [account_from_row(row) for row in rows]

    async def get_trial_balance(self) -> dict[str, Any]:
        """Trial balance

        Each account's balance goes to its normal side (or the opposite side
        when negative). Archived accounts with a non-zero balance are kept.

        Returns:
            {"accounts": [...], "total_debit", "total_credit", "balanced"}
        """
        rows = await self.list_accounts(include_inactive=True)

        accounts = []
        total_debit = ZERO
        total_credit = ZERO

        for account in rows:
            balance = account["balance"]
            if not account["is_active"] and balance == 0:
                continue

            debit_side = account["normal_balance"] == NormalBalance.DEBIT.value
            if balance < 0:
                debit_side = not debit_side
            debit = abs(balance) if debit_side else ZERO
            credit = ZERO if debit_side else abs(balance)

            total_debit += debit
            total_credit += credit
            accounts.append(
                {
                    "account_id": account["account_id"],
                    "code": account["code"],
                    "name": account["name"],
                    "account_type": account["account_type"],
                    "balance": balance,
                    "debit": debit,
                    "credit": credit,
                }
            )

        return {
            "accounts": accounts,
            "total_debit": total_debit,
            "total_credit": total_credit,
            "balanced": abs(total_debit - total_credit) <= Tolerances.ENTRY_BALANCE,
        }
