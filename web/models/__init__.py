"""
Web models package

Pydantic schema definitions
"""

from web.models.requests import (
    MergeCategoriesRequest,
    PostMissingEntriesRequest,
    RebuildEntriesRequest,
    RecalculateRequest,
    RepairMissingLinksRequest,
    ReverseEntryRequest,
)
from web.models.responses import (
    AccountLedgerLine,
    BatchResultResponse,
    HealthResponse,
    LedgerAccountResponse,
    LedgerEntryResponse,
    LedgerLineResponse,
    ReversalResponse,
    TrialBalanceLine,
    TrialBalanceResponse,
)

__all__ = [
    # Requests
    "ReverseEntryRequest",
    "RecalculateRequest",
    "RepairMissingLinksRequest",
    "RebuildEntriesRequest",
    "MergeCategoriesRequest",
    "PostMissingEntriesRequest",
    # Responses
    "HealthResponse",
    "LedgerAccountResponse",
    "TrialBalanceLine",
    "TrialBalanceResponse",
    "AccountLedgerLine",
    "LedgerLineResponse",
    "LedgerEntryResponse",
    "ReversalResponse",
    "BatchResultResponse",
]
