"""Pydantic schemas for credit balance and ledger history."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from headshot_studio.models.ledger_entry import LedgerCategory


class BalanceResponse(BaseModel):
    """Current balance of the authenticated account."""

    account_id: str = Field(description="Account ID")
    credits: int = Field(ge=0, description="Current credit balance")
    total_credits_purchased: int = Field(ge=0, description="Lifetime purchased credits")


class LedgerEntryResponse(BaseModel):
    """One ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Entry ID")
    delta: int = Field(description="Signed credit change")
    category: LedgerCategory = Field(description="Entry category")
    description: str = Field(description="Entry description")
    created_at: Optional[datetime] = Field(default=None, description="When the entry was written")


class HistoryResponse(BaseModel):
    """Most recent ledger entries, newest first."""

    entries: list[LedgerEntryResponse] = Field(description="Ledger entries")
    count: int = Field(ge=0, description="Number of entries returned")


class PurchaseRequest(BaseModel):
    """Request for a direct (mock) credit purchase."""

    package_id: str = Field(description="Credit package ID")
    quantity: int = Field(default=1, ge=1, le=10, description="Number of packages")


class PurchaseResponse(BaseModel):
    """Result of a direct credit purchase."""

    success: bool = Field(default=True)
    message: str = Field(description="Human-readable result")
    credits_added: int = Field(ge=1, description="Credits granted")
    new_balance: int = Field(ge=0, description="Balance after the purchase")
