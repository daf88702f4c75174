"""API routes for credit balances.

This module provides REST endpoints for:
- GET /api/v1/credits/balance - Get current balance
- GET /api/v1/credits/history - Get recent ledger entries
- GET /api/v1/credits/packages - List credit packages
- POST /api/v1/credits/purchase - Direct purchase (development only)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from headshot_studio.api.deps import get_credit_ledger, get_current_account, get_stripe_service
from headshot_studio.core.config import settings
from headshot_studio.models.account import Account
from headshot_studio.schemas.credits import (
    BalanceResponse,
    HistoryResponse,
    LedgerEntryResponse,
    PurchaseRequest,
    PurchaseResponse,
)
from headshot_studio.schemas.stripe import CreditPackagesResponse
from headshot_studio.services.credit_ledger import CreditLedger
from headshot_studio.services.errors import AccountNotFoundError
from headshot_studio.services.stripe_service import InvalidPackageError, StripeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get(
    "/balance",
    response_model=BalanceResponse,
    summary="Get credit balance",
    description="Get the current credit balance for the authenticated account",
)
async def get_balance(
    current_account: Account = Depends(get_current_account),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> BalanceResponse:
    try:
        account = await ledger.get_account(current_account.id)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return BalanceResponse(
        account_id=account.id,
        credits=account.balance,
        total_credits_purchased=account.total_credits_purchased,
    )


@router.get(
    "/history",
    response_model=HistoryResponse,
    summary="Get credit history",
    description="Get the most recent ledger entries, newest first",
)
async def get_history(
    limit: int = Query(
        default=20,
        ge=1,
        le=100,
        description="Maximum number of entries to return",
    ),
    current_account: Account = Depends(get_current_account),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> HistoryResponse:
    try:
        entries = await ledger.list_history(current_account.id, limit=limit)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return HistoryResponse(
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries],
        count=len(entries),
    )


@router.get(
    "/packages",
    response_model=CreditPackagesResponse,
    summary="List credit packages",
)
async def list_packages() -> CreditPackagesResponse:
    """List all credit packages. No authentication required."""
    return CreditPackagesResponse(packages=StripeService.get_packages(), currency="usd")


@router.post(
    "/purchase",
    response_model=PurchaseResponse,
    summary="Purchase credits directly",
    description="Grant a package without payment. Only enabled when ALLOW_MOCK_PURCHASES is set.",
)
async def purchase_credits(
    request: PurchaseRequest,
    current_account: Account = Depends(get_current_account),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> PurchaseResponse:
    """
    Add a package's credits to the balance as a purchase entry.

    Raises:
        HTTPException(403): If direct purchases are disabled
        HTTPException(400): If package_id is invalid
    """
    if not settings.ALLOW_MOCK_PURCHASES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Direct purchases are disabled; use Stripe checkout",
        )

    try:
        credits, new_balance = await stripe_service.purchase_credits(
            current_account.id, request.package_id, request.quantity
        )
    except InvalidPackageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    logger.info(f"Direct purchase of {credits} credits by account {current_account.id}")
    return PurchaseResponse(
        message=f"Successfully purchased {credits} credits!",
        credits_added=credits,
        new_balance=new_balance,
    )
