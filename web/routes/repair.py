"""
Repair API routes

Backs the reconciliation screens. Analysis routes are read-only; the
POST routes default to dry_run=True.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from core.config.loader import Settings
from core.ledger.context import CompanyLedger
from repair.analysis import BalanceAnalyzer
from repair.backfill import LedgerBackfill
from repair.recalculation import BalanceRecalculator
from web.dependencies import get_app_settings, get_ledger, get_ledger_write
from web.models.requests import (
    MergeCategoriesRequest,
    PostMissingEntriesRequest,
    RebuildEntriesRequest,
    RecalculateRequest,
    RepairMissingLinksRequest,
)
from web.models.responses import BatchResultResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/repair", tags=["Repair"])


@router.get("/analysis")
async def get_analysis(company: CompanyLedger = Depends(get_ledger)) -> dict[str, Any]:
    """Expected vs stored balance of every financial account"""
    return await BalanceAnalyzer(company).analyze_discrepancies()


@router.get("/recommendations")
async def get_recommendations(company: CompanyLedger = Depends(get_ledger)) -> dict[str, Any]:
    return await BalanceAnalyzer(company).get_repair_recommendations()


@router.get("/diagnose/{account_id}")
async def diagnose_account(
    account_id: str,
    company: CompanyLedger = Depends(get_ledger),
) -> dict[str, Any]:
    """Full trace of one financial account"""
    return await BalanceAnalyzer(company).diagnose(account_id)


@router.post("/recalculate")
async def recalculate(
    request: RecalculateRequest,
    company: CompanyLedger = Depends(get_ledger_write),
) -> dict[str, Any]:
    """Replay the ledger into the financial account balances"""
    recalculator = BalanceRecalculator(company)
    result = await recalculator.recalculate_balances(dry_run=request.dry_run)
    if request.include_ledger_accounts:
        result["ledger_accounts"] = await recalculator.recalculate_ledger_accounts(dry_run=request.dry_run)
    return result


@router.post("/missing-links", response_model=BatchResultResponse)
async def repair_missing_links(
    request: RepairMissingLinksRequest,
    company: CompanyLedger = Depends(get_ledger_write),
    settings: Settings = Depends(get_app_settings),
):
    backfill = LedgerBackfill(company, settings.repair)
    result = await backfill.repair_missing_links(
        request.default_account_id,
        dry_run=request.dry_run,
        limit=request.limit,
    )
    return result.to_dict()


@router.post("/missing-entries", response_model=BatchResultResponse)
async def post_missing_entries(
    request: PostMissingEntriesRequest,
    company: CompanyLedger = Depends(get_ledger_write),
    settings: Settings = Depends(get_app_settings),
):
    backfill = LedgerBackfill(company, settings.repair)
    result = await backfill.post_missing_entries(dry_run=request.dry_run, limit=request.limit)
    return result.to_dict()


@router.post("/rebuild", response_model=BatchResultResponse)
async def rebuild_entries(
    request: RebuildEntriesRequest,
    company: CompanyLedger = Depends(get_ledger_write),
    settings: Settings = Depends(get_app_settings),
):
    backfill = LedgerBackfill(company, settings.repair)
    result = await backfill.rebuild_all_entries(dry_run=request.dry_run, limit=request.limit)
    return result.to_dict()


@router.post("/merge-categories", response_model=BatchResultResponse)
async def merge_categories(
    request: MergeCategoriesRequest,
    company: CompanyLedger = Depends(get_ledger_write),
    settings: Settings = Depends(get_app_settings),
):
    backfill = LedgerBackfill(company, settings.repair)
    result = await backfill.merge_categories(
        request.source_category,
        request.target_category,
        kind=request.kind,
        dry_run=request.dry_run,
    )
    return result.to_dict()
