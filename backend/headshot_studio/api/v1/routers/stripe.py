"""API routes for Stripe payment integration.

This module provides REST endpoints for:
- GET /api/v1/stripe/config - Get public Stripe configuration
- POST /api/v1/stripe/checkout - Create checkout session
- GET /api/v1/stripe/session-status - Look up a checkout session
- POST /api/v1/stripe/webhook - Handle Stripe webhooks
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from headshot_studio.api.deps import get_current_account, get_stripe_service
from headshot_studio.core.config import settings
from headshot_studio.models.account import Account
from headshot_studio.schemas.stripe import CheckoutRequest, CheckoutResponse, SessionStatusResponse
from headshot_studio.services.stripe_service import (
    InvalidPackageError,
    PaymentProcessingError,
    StripeService,
    StripeServiceError,
    WebhookVerificationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["stripe", "payments"])


@router.get(
    "/config",
    response_model=dict,
    summary="Get Stripe configuration",
    description="Get public Stripe configuration (publishable key)",
)
async def get_stripe_config() -> dict:
    if not settings.STRIPE_PUBLISHABLE_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe is not configured",
        )
    return {"publishable_key": settings.STRIPE_PUBLISHABLE_KEY}


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create checkout session",
    description="Create a Stripe checkout session for a credit package",
)
async def create_checkout_session(
    request: CheckoutRequest,
    current_account: Account = Depends(get_current_account),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> CheckoutResponse:
    """Create a Stripe checkout session for a credit purchase.

    The session metadata carries the account, package and quantity so the
    webhook can grant credits without further lookups.

    Raises:
        HTTPException(400): If package_id is invalid
        HTTPException(503): If Stripe is not configured or unavailable
    """
    try:
        session_id, checkout_url, expires_at = await stripe_service.create_checkout_session(
            account_id=current_account.id,
            customer_email=current_account.email,
            package_id=request.package_id,
            quantity=request.quantity,
            success_url=str(request.success_url),
            cancel_url=str(request.cancel_url),
        )
    except InvalidPackageError as e:
        logger.warning(f"Invalid package request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StripeServiceError as e:
        logger.error(f"Stripe service error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service temporarily unavailable",
        )

    return CheckoutResponse(session_id=session_id, checkout_url=checkout_url, expires_at=expires_at)


@router.get(
    "/session-status",
    response_model=SessionStatusResponse,
    summary="Get checkout session status",
)
async def get_session_status(
    session_id: str = Query(..., min_length=1, description="Checkout session ID"),
    current_account: Account = Depends(get_current_account),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> SessionStatusResponse:
    try:
        result = await stripe_service.retrieve_session_status(session_id)
    except StripeServiceError as e:
        logger.error(f"Stripe service error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service temporarily unavailable",
        )
    return SessionStatusResponse(**result)


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Stripe webhook handler",
    description="Handle Stripe webhook events (signature verified)",
    include_in_schema=False,
)
async def handle_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
) -> dict:
    """Handle Stripe webhook events.

    Called by Stripe's servers without authentication; the signature is the
    only credential. A 500 makes Stripe redeliver the event, which is safe
    because credit grants are keyed by event id.

    Raises:
        HTTPException(400): If signature verification fails
        HTTPException(500): If webhook processing fails
    """
    payload = await request.body()

    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature",
        )

    try:
        event = StripeService.verify_webhook_signature(payload=payload, signature=signature)
    except WebhookVerificationError as e:
        logger.error(f"Webhook verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature",
        )

    try:
        result = await stripe_service.process_webhook_event(event)
    except PaymentProcessingError as e:
        logger.error(f"Payment processing error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    logger.info(f"Webhook processed successfully: {event['type']} ({event['id']})")
    return {
        "success": True,
        "event_id": event["id"],
        "event_type": event["type"],
        "result": result,
    }
