"""
Response schemas (Pydantic)

Serialisation of Web API responses. Amounts are Decimal and serialise as
strings.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(default="ok", description="Service status")
    company_id: str = Field(..., description="Default company")
    version: str = Field(..., description="API version")


class LedgerAccountResponse(BaseModel):
    """Ledger account"""

    account_id: str = Field(..., description="Account id")
    code: str = Field(..., description="Account code")
    name: str = Field(..., description="Account name")
    account_type: str = Field(..., description="asset/liability/equity/revenue/expense/cost-of-goods")
    normal_balance: str = Field(..., description="debit or credit")
    currency: str = Field(..., description="Currency")
    balance: Decimal = Field(..., description="Running balance")
    debit_total: Decimal = Field(..., description="Sum of debits")
    credit_total: Decimal = Field(..., description="Sum of credits")
    is_system: bool = Field(..., description="Seeded system account")
    is_active: bool = Field(..., description="False once archived")
    linked_external_account_id: str | None = Field(default=None, description="Mirrored financial account")
    category: str | None = Field(default=None, description="Normalised category")


class TrialBalanceLine(BaseModel):
    """Trial balance row"""

    account_id: str
    code: str
    name: str
    account_type: str
    balance: Decimal
    debit: Decimal
    credit: Decimal


class TrialBalanceResponse(BaseModel):
    """Trial balance"""

    accounts: list[TrialBalanceLine] = Field(default_factory=list)
    total_debit: Decimal = Field(..., description="Debit column total")
    total_credit: Decimal = Field(..., description="Credit column total")
    balanced: bool = Field(..., description="Columns agree within the rounding tolerance")


class AccountLedgerLine(BaseModel):
    """One line of an account's history"""

    entry_id: str
    entry_date: str
    description: str
    source_type: str
    source_id: str | None = None
    is_reversal: bool
    reversed: bool
    debit: Decimal
    credit: Decimal
    currency: str
    external_account_id: str | None = None


class LedgerLineResponse(BaseModel):
    """Entry line"""

    account_id: str
    debit: Decimal
    credit: Decimal
    currency: str
    external_account_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    line_order: int


class LedgerEntryResponse(BaseModel):
    """Journal entry with its lines"""

    entry_id: str
    entry_date: str
    description: str
    total_debit: Decimal
    total_credit: Decimal
    source_id: str | None = None
    source_type: str
    currency: str | None = None
    is_reversal: bool
    reverses_entry_id: str | None = None
    reversed: bool
    reversal_entry_id: str | None = None
    reversed_at: str | None = None
    reversed_by: str | None = None
    reversal_reason: str | None = None
    created_by: str | None = None
    lines: list[LedgerLineResponse] = Field(default_factory=list)


class ReversalResponse(BaseModel):
    """Reversal result"""

    entry_id: str = Field(..., description="Reversed entry")
    reversal_entry_id: str = Field(..., description="Reversal entry")


class BatchResultResponse(BaseModel):
    """Batch repair result"""

    total: int = Field(..., description="Items selected")
    processed: int = Field(..., description="Items processed")
    updated: int = Field(..., description="Items changed")
    errors: list[dict[str, Any]] = Field(default_factory=list, description="Per-item failures")
    dry_run: bool = Field(..., description="Nothing was written")
    items: list[dict[str, Any]] = Field(default_factory=list, description="Items a dry run would touch")
