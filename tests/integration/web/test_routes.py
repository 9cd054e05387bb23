"""
Web API tests

Requests go through httpx's ASGI transport; the DB dependencies are
overridden with the test database.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.context import CompanyLedger
from core.ledger.types import SystemAccounts
from web.app import app
from web.dependencies import get_app_settings, get_db, get_db_write


@pytest_asyncio.fixture
async def client(db: SQLiteAdapter, company: CompanyLedger, db_path: Path, tmp_path: Path) -> httpx.AsyncClient:
    settings_file = tmp_path / "settings.yaml"
    settings_file.write_text(
        f'database:\n  path: "{db_path}"\n'
        "ledger:\n  default_company_id: acme\n"
        "repair:\n  batch_delay_sec: 0\n",
        encoding="utf-8",
    )
    settings = get_settings(settings_file)

    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_db_write] = override_db
    app.dependency_overrides[get_app_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


async def paid_expense(company: CompanyLedger, bank: dict[str, Any], amount: str = "50") -> Any:
    return await company.binding.create_expense(
        {
            "amount": amount,
            "currency": "EUR",
            "category": "Travel",
            "payment_status": "paid",
            "financial_account_id": bank["account_id"],
        }
    )


class TestHealth:
    """GET /health"""

    @pytest.mark.asyncio
    async def test_health(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["company_id"] == "acme"


class TestLedgerRoutes:
    """/api/ledger routes"""

    @pytest.mark.asyncio
    async def test_list_accounts(self, client: httpx.AsyncClient, bank: dict[str, Any]) -> None:
        response = await client.get("/api/ledger/accounts")

        assert response.status_code == 200
        codes = [account["code"] for account in response.json()]
        assert codes == sorted(codes)
        assert SystemAccounts.CASH in {account["account_id"] for account in response.json()}

    @pytest.mark.asyncio
    async def test_filter_by_type(self, client: httpx.AsyncClient, bank: dict[str, Any]) -> None:
        response = await client.get("/api/ledger/accounts", params={"account_type": "asset"})

        assert response.status_code == 200
        assert {account["account_type"] for account in response.json()} == {"asset"}
        assert bank["ledger_account_id"] in {account["account_id"] for account in response.json()}

    @pytest.mark.asyncio
    async def test_other_company_is_empty(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/ledger/accounts", params={"company_id": "nobody"})

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_get_account(self, client: httpx.AsyncClient, bank: dict[str, Any]) -> None:
        response = await client.get(f"/api/ledger/accounts/{bank['ledger_account_id']}")

        assert response.status_code == 200
        assert Decimal(str(response.json()["balance"])) == Decimal("200.00")
        assert response.json()["linked_external_account_id"] == bank["account_id"]

    @pytest.mark.asyncio
    async def test_get_missing_account(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/ledger/accounts/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_account_entries(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        await paid_expense(company, bank)

        response = await client.get(f"/api/ledger/accounts/{bank['ledger_account_id']}/entries")

        assert response.status_code == 200
        assert len(response.json()) == 2

    @pytest.mark.asyncio
    async def test_trial_balance(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        await paid_expense(company, bank)

        response = await client.get("/api/ledger/trial-balance")

        assert response.status_code == 200
        body = response.json()
        assert body["balanced"] is True
        assert Decimal(str(body["total_debit"])) == Decimal(str(body["total_credit"]))

    @pytest.mark.asyncio
    async def test_get_entry(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        created = await paid_expense(company, bank)

        response = await client.get(f"/api/ledger/entries/{created.ledger_entry_id}")

        assert response.status_code == 200
        assert response.json()["source_id"] == created.record_id
        assert len(response.json()["lines"]) == 2

    @pytest.mark.asyncio
    async def test_get_missing_entry(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/ledger/entries/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reverse_entry(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        created = await paid_expense(company, bank)
        url = f"/api/ledger/entries/{created.ledger_entry_id}/reverse"

        first = await client.post(url, json={"actor": "web-user", "reason": "Typo"})
        second = await client.post(url, json={})

        assert first.status_code == 200
        assert first.json()["reversal_entry_id"] == second.json()["reversal_entry_id"]
        account = await company.financial_accounts.require(bank["account_id"])
        assert account["current_balance"] == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_reverse_unknown_entry(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/ledger/entries/missing/reverse", json={})

        assert response.status_code == 404
        assert response.json()["error_type"] == "EntryNotFoundError"

    @pytest.mark.asyncio
    async def test_reverse_a_reversal(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        created = await paid_expense(company, bank)
        reversal_id = await company.reversal.reverse_entry(created.ledger_entry_id)

        response = await client.post(f"/api/ledger/entries/{reversal_id}/reverse", json={})

        assert response.status_code == 400


class TestRepairRoutes:
    """/api/repair routes"""

    @pytest.mark.asyncio
    async def test_analysis(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.financial_accounts.overwrite_balance(bank["account_id"], Decimal("10"))

        response = await client.get("/api/repair/analysis")

        assert response.status_code == 200
        assert response.json()["issues_found"] == 1

    @pytest.mark.asyncio
    async def test_recommendations(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.financial_accounts.overwrite_balance(bank["account_id"], Decimal("10"))

        response = await client.get("/api/repair/recommendations")

        assert response.status_code == 200
        assert [item["action"] for item in response.json()["recommendations"]] == ["recalculate_balances"]

    @pytest.mark.asyncio
    async def test_diagnose(self, client: httpx.AsyncClient, bank: dict[str, Any]) -> None:
        response = await client.get(f"/api/repair/diagnose/{bank['account_id']}")

        assert response.status_code == 200
        assert response.json()["ledger"]["line_count"] == 1

    @pytest.mark.asyncio
    async def test_diagnose_unknown(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/repair/diagnose/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_recalculate_defaults_to_dry_run(
        self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]
    ) -> None:
        await company.financial_accounts.overwrite_balance(bank["account_id"], Decimal("10"))

        response = await client.post("/api/repair/recalculate", json={})

        assert response.status_code == 200
        assert response.json()["dry_run"] is True
        assert response.json()["updated"] == 1
        assert (await company.financial_accounts.require(bank["account_id"]))["current_balance"] == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_recalculate(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.financial_accounts.overwrite_balance(bank["account_id"], Decimal("10"))

        response = await client.post(
            "/api/repair/recalculate",
            json={"dry_run": False, "include_ledger_accounts": True},
        )

        assert response.status_code == 200
        assert response.json()["ledger_accounts"]["updated"] == 0
        assert (await company.financial_accounts.require(bank["account_id"]))["current_balance"] == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_missing_links(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await company.binding.create_expense({"amount": "20", "currency": "EUR", "payment_status": "paid"})

        response = await client.post(
            "/api/repair/missing-links",
            json={"default_account_id": bank["account_id"], "dry_run": False},
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 1
        assert (await company.financial_accounts.require(bank["account_id"]))["current_balance"] == Decimal("180.00")

    @pytest.mark.asyncio
    async def test_missing_links_unknown_account(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/repair/missing-links", json={"default_account_id": "missing"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_entries(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        record = await company.records.create("expense", {"amount": "25", "currency": "EUR"})

        dry = await client.post("/api/repair/missing-entries", json={})
        posted = await client.post("/api/repair/missing-entries", json={"dry_run": False})

        assert dry.json()["dry_run"] is True
        assert [item["record_id"] for item in dry.json()["items"]] == [record["record_id"]]
        assert posted.status_code == 200
        assert posted.json()["updated"] == 1
        assert (await company.records.require(record["record_id"]))["ledger_entry_id"] is not None

    @pytest.mark.asyncio
    async def test_rebuild_dry_run(self, client: httpx.AsyncClient, company: CompanyLedger, bank: dict[str, Any]) -> None:
        await paid_expense(company, bank)

        response = await client.post("/api/repair/rebuild", json={})

        assert response.status_code == 200
        assert response.json()["dry_run"] is True
        assert len(response.json()["items"]) == 1

    @pytest.mark.asyncio
    async def test_merge_same_category(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/repair/merge-categories",
            json={"source_category": "Travel", "target_category": "travel"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_merge_invalid_kind(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/repair/merge-categories",
            json={"source_category": "A", "target_category": "B", "kind": "transfer"},
        )

        assert response.status_code == 422
