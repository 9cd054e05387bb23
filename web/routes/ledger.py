"""
Ledger API routes

Chart of accounts, trial balance, entry history and reversal.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from core.ledger.context import CompanyLedger
from core.ledger.types import AccountType
from web.dependencies import get_ledger, get_ledger_write
from web.models.requests import ReverseEntryRequest
from web.models.responses import (
    AccountLedgerLine,
    LedgerAccountResponse,
    LedgerEntryResponse,
    ReversalResponse,
    TrialBalanceResponse,
)

router = APIRouter(prefix="/api/ledger", tags=["Ledger"])


@router.get("/accounts", response_model=list[LedgerAccountResponse])
async def list_accounts(
    account_type: AccountType | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    company: CompanyLedger = Depends(get_ledger),
):
    """Chart of accounts, ordered by code"""
    return await company.chart.list_accounts(account_type, include_inactive)


@router.get("/accounts/{account_id}", response_model=LedgerAccountResponse)
async def get_account(
    account_id: str,
    company: CompanyLedger = Depends(get_ledger),
):
    account = await company.chart.get_account(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Ledger account not found: {account_id}")
    return account


@router.get("/accounts/{account_id}/entries", response_model=list[AccountLedgerLine])
async def get_account_entries(
    account_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    company: CompanyLedger = Depends(get_ledger),
):
    """Account history (v_account_ledger), newest first"""
    return await company.ledger.get_entries_by_account(account_id, limit, offset)


@router.get("/trial-balance", response_model=TrialBalanceResponse)
async def get_trial_balance(company: CompanyLedger = Depends(get_ledger)):
    return await company.chart.get_trial_balance()


@router.get("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(
    entry_id: str,
    company: CompanyLedger = Depends(get_ledger),
):
    entry = await company.ledger.get_entry(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Ledger entry not found: {entry_id}")
    return entry


@router.post("/entries/{entry_id}/reverse", response_model=ReversalResponse)
async def reverse_entry(
    entry_id: str,
    request: ReverseEntryRequest,
    company: CompanyLedger = Depends(get_ledger_write),
):
    """Reverse an entry (returns the existing reversal when already reversed)"""
    reversal_id = await company.reversal.reverse_entry(entry_id, actor=request.actor, reason=request.reason)
    return ReversalResponse(entry_id=entry_id, reversal_entry_id=reversal_id)
