"""
Request schemas (Pydantic)

Validation of Web API request bodies
"""

from pydantic import BaseModel, Field


class ReverseEntryRequest(BaseModel):
    """Entry reversal request"""

    actor: str | None = Field(default=None, description="User performing the reversal")
    reason: str | None = Field(default=None, max_length=500, description="Reversal reason")


class RecalculateRequest(BaseModel):
    """Balance recalculation request"""

    dry_run: bool = Field(default=True, description="Report changes without writing")
    include_ledger_accounts: bool = Field(
        default=False,
        description="Also recompute ledger account balances and totals",
    )


class RepairMissingLinksRequest(BaseModel):
    """Link paid expenses to a default financial account"""

    default_account_id: str = Field(..., description="Financial account to link")
    dry_run: bool = Field(default=True, description="List the records without changing them")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of records")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"default_account_id": "main-bank", "dry_run": True, "limit": 50},
            ]
        }
    }


class RebuildEntriesRequest(BaseModel):
    """Rebuild the entries of every settled record"""

    dry_run: bool = Field(default=True, description="List the records without changing them")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of records")


class PostMissingEntriesRequest(BaseModel):
    """Post the entries of records and account openings saved without one"""

    dry_run: bool = Field(default=True, description="List the items without posting")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of items")


class MergeCategoriesRequest(BaseModel):
    """Move records from one category to another"""

    source_category: str = Field(..., min_length=1, description="Category to merge away")
    target_category: str = Field(..., min_length=1, description="Category to keep")
    kind: str = Field(default="expense", pattern="^(expense|income)$", description="Record kind")
    dry_run: bool = Field(default=True, description="List the records without changing them")
