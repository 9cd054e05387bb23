"""ChartOfAccounts integration tests"""

from typing import Any

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.accounts import ChartOfAccounts
from core.ledger.context import CompanyLedger
from core.ledger.errors import LedgerValidationError, UnknownAccountError
from core.ledger.types import SYSTEM_ACCOUNTS, AccountType, CategoryKind, SystemAccounts
from core.storage.settings_store import LedgerSettingsStore, SettingsCategoryMappingRepository
from core.types import FinancialAccountType


class TestSystemAccounts:
    """ensure_system_accounts tests"""

    @pytest.mark.asyncio
    async def test_seeded_once(self, company: CompanyLedger) -> None:
        accounts = await company.chart.list_accounts()

        assert len(accounts) == len(SYSTEM_ACCOUNTS)
        assert all(account["is_system"] for account in accounts)
        assert await company.chart.ensure_system_accounts() == []

    @pytest.mark.asyncio
    async def test_normal_balances(self, company: CompanyLedger) -> None:
        cash = await company.chart.require_account(SystemAccounts.CASH)
        payable = await company.chart.require_account(SystemAccounts.ACCOUNTS_PAYABLE)

        assert cash["normal_balance"] == "debit"
        assert payable["normal_balance"] == "credit"
        assert cash["currency"] == "EUR"

    @pytest.mark.asyncio
    async def test_companies_are_isolated(self, db: SQLiteAdapter, company: CompanyLedger) -> None:
        other = await CompanyLedger.open(db, "globex", "USD")

        await other.chart.create_account("Globex only", AccountType.EXPENSE)

        assert len(await company.chart.list_accounts()) == len(SYSTEM_ACCOUNTS)
        assert len(await other.chart.list_accounts()) == len(SYSTEM_ACCOUNTS) + 1
        assert (await other.chart.require_account(SystemAccounts.CASH))["currency"] == "USD"


class TestAccountCodes:
    """Code allocation tests"""

    @pytest.mark.asyncio
    async def test_next_code_after_highest(self, company: CompanyLedger) -> None:
        assert await company.chart.next_account_code(AccountType.ASSET) == "1101"
        assert await company.chart.next_account_code(AccountType.EXPENSE) == "5101"

    @pytest.mark.asyncio
    async def test_empty_band_starts_at_minimum(self, db: SQLiteAdapter) -> None:
        chart = ChartOfAccounts(db, "empty-co")

        assert await chart.next_account_code(AccountType.LIABILITY) == "2000"

    @pytest.mark.asyncio
    async def test_full_band(self, company: CompanyLedger) -> None:
        await company.chart.create_account("Last COGS", AccountType.COST_OF_GOODS, code="5099")

        with pytest.raises(LedgerValidationError, match="No free account code"):
            await company.chart.next_account_code(AccountType.COST_OF_GOODS)

    @pytest.mark.asyncio
    async def test_code_outside_band(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError, match="outside"):
            await company.chart.create_account("Bad", AccountType.REVENUE, code="1500")

    @pytest.mark.asyncio
    async def test_duplicate_code(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError, match="already in use"):
            await company.chart.create_account("Petty cash", AccountType.ASSET, code="1000")


class TestAccountMutation:
    """create / update / archive tests"""

    @pytest.mark.asyncio
    async def test_create_account(self, company: CompanyLedger) -> None:
        account = await company.chart.create_account("Rent", AccountType.EXPENSE, description="Office")

        assert account["code"] == "5101"
        assert account["normal_balance"] == "debit"
        assert account["balance"] == 0
        assert not account["is_system"]

    @pytest.mark.asyncio
    async def test_blank_name(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError):
            await company.chart.create_account("  ", AccountType.EXPENSE)

    @pytest.mark.asyncio
    async def test_update_name(self, company: CompanyLedger) -> None:
        account = await company.chart.create_account("Rent", AccountType.EXPENSE)

        updated = await company.chart.update_account(account["account_id"], {"name": "Office rent"})

        assert updated["name"] == "Office rent"

    @pytest.mark.asyncio
    async def test_type_cannot_change(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError):
            await company.chart.update_account(SystemAccounts.CASH, {"account_type": "liability"})

    @pytest.mark.asyncio
    async def test_system_account_cannot_be_deactivated(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError):
            await company.chart.update_account(SystemAccounts.REVENUE, {"is_active": False})

    @pytest.mark.asyncio
    async def test_update_unknown(self, company: CompanyLedger) -> None:
        with pytest.raises(UnknownAccountError):
            await company.chart.update_account("nope", {"name": "x"})

    @pytest.mark.asyncio
    async def test_archive_system_account(self, company: CompanyLedger) -> None:
        with pytest.raises(LedgerValidationError):
            await company.chart.archive_account(SystemAccounts.CASH)

    @pytest.mark.asyncio
    async def test_archive_mirror_clears_links(self, company: CompanyLedger, bank: dict[str, Any]) -> None:
        mirror_id = bank["ledger_account_id"]

        archived = await company.chart.archive_account(mirror_id, reason="Bank closed")

        assert not archived["is_active"]
        assert archived["archived_reason"] == "Bank closed"
        assert archived["linked_external_account_id"] is None
        assert (await company.financial_accounts.require(bank["account_id"]))["ledger_account_id"] is None
        assert mirror_id not in {a["account_id"] for a in await company.chart.list_accounts()}


class TestCategoryAccounts:
    """get_or_create_category_account tests"""

    @pytest.mark.asyncio
    async def test_blank_category_uses_default(self, company: CompanyLedger) -> None:
        assert (
            await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "  ")
            == SystemAccounts.OPERATING_EXPENSE
        )
        assert await company.chart.get_or_create_category_account(CategoryKind.INCOME, None) == SystemAccounts.REVENUE

    @pytest.mark.asyncio
    async def test_created_once_per_normalised_label(self, company: CompanyLedger) -> None:
        first = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Software")
        second = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "  software ")

        assert first == second
        account = await company.chart.require_account(first)
        assert account["name"] == "Software"
        assert account["category"] == "software"
        assert account["account_type"] == "expense"

    @pytest.mark.asyncio
    async def test_kinds_are_separate(self, company: CompanyLedger) -> None:
        expense = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Consulting")
        income = await company.chart.get_or_create_category_account(CategoryKind.INCOME, "Consulting")

        assert expense != income
        assert (await company.chart.require_account(income))["account_type"] == "revenue"

    @pytest.mark.asyncio
    async def test_mapping_persisted(self, company: CompanyLedger) -> None:
        account_id = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel")

        repo = SettingsCategoryMappingRepository(LedgerSettingsStore(company.db, company.company_id))
        assert await repo.get(CategoryKind.EXPENSE, "TRAVEL") == account_id
        assert (await repo.all())["expenseCategories"] == {"travel": account_id}

    @pytest.mark.asyncio
    async def test_lost_mapping_reuses_account(self, company: CompanyLedger) -> None:
        account_id = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel")
        await company.settings.set("ledgerMappings", {})

        assert await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel") == account_id

    @pytest.mark.asyncio
    async def test_archived_mapping_replaced(self, company: CompanyLedger) -> None:
        old_id = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel")
        await company.chart.archive_account(old_id)

        new_id = await company.chart.get_or_create_category_account(CategoryKind.EXPENSE, "Travel")

        assert new_id != old_id
        assert (await company.chart.require_account(new_id))["is_active"]


class TestExternalMirrors:
    """get_or_create_external_account_mirror tests"""

    @pytest.mark.asyncio
    async def test_mirror_created_once(self, company: CompanyLedger) -> None:
        account = await company.financial_accounts.create("Card", "EUR", account_type=FinancialAccountType.CARD)

        first = await company.chart.get_or_create_external_account_mirror(account["account_id"])
        second = await company.chart.get_or_create_external_account_mirror(account["account_id"])

        assert first == second
        mirror = await company.chart.require_account(first)
        assert mirror["account_type"] == "asset"
        assert mirror["linked_external_account_id"] == account["account_id"]
        assert (await company.financial_accounts.require(account["account_id"]))["ledger_account_id"] == first

    @pytest.mark.asyncio
    async def test_archived_mirror_replaced(self, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.chart.archive_account(bank["ledger_account_id"])

        new_mirror = await company.chart.get_or_create_external_account_mirror(bank["account_id"])

        assert new_mirror != bank["ledger_account_id"]


class TestTrialBalance:
    """get_trial_balance tests"""

    @pytest.mark.asyncio
    async def test_empty_ledger_balanced(self, company: CompanyLedger) -> None:
        trial = await company.chart.get_trial_balance()

        assert trial["balanced"]
        assert trial["total_debit"] == 0

    @pytest.mark.asyncio
    async def test_after_postings(self, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.binding.create_expense(
            {"amount": "50", "currency": "EUR", "category": "Travel", "payment_status": "unpaid"}
        )

        trial = await company.chart.get_trial_balance()

        assert trial["balanced"]
        assert trial["total_debit"] == trial["total_credit"] == 250
        by_id = {row["account_id"]: row for row in trial["accounts"]}
        assert by_id[SystemAccounts.OPENING_BALANCE_EQUITY]["credit"] == 200
        assert by_id[SystemAccounts.ACCOUNTS_PAYABLE]["credit"] == 50
