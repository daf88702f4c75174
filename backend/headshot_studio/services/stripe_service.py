"""Stripe payment integration service.

This service provides:
- Credit package definitions
- Checkout session creation and status lookup
- Webhook signature verification and event processing
- Idempotent credit grants through the credit ledger
"""

import logging
from typing import Any, Optional

import stripe

from headshot_studio.core.config import settings
from headshot_studio.models.ledger_entry import LedgerCategory
from headshot_studio.schemas.stripe import CreditPackage
from headshot_studio.services.credit_ledger import CreditLedger, get_credit_ledger
from headshot_studio.services.errors import AccountNotFoundError, DuplicateEntryError

logger = logging.getLogger(__name__)

# Initialize Stripe with API key from settings
stripe.api_key = settings.STRIPE_SECRET_KEY

CREDIT_PACKAGES: list[CreditPackage] = [
    CreditPackage(id="starter", name="Starter Pack", credits=25, price_cents=999),
    CreditPackage(id="popular", name="Popular Pack", credits=60, price_cents=1999, popular=True),
    CreditPackage(id="professional", name="Professional Pack", credits=150, price_cents=3499),
    CreditPackage(id="business", name="Business Pack", credits=300, price_cents=5999),
]

PACKAGE_LOOKUP: dict[str, CreditPackage] = {pkg.id: pkg for pkg in CREDIT_PACKAGES}


class StripeServiceError(Exception):
    """Base exception for Stripe service errors."""

    pass


class InvalidPackageError(StripeServiceError):
    """Raised when an invalid package ID is provided."""

    pass


class WebhookVerificationError(StripeServiceError):
    """Raised when webhook signature verification fails."""

    pass


class PaymentProcessingError(StripeServiceError):
    """Raised when a paid checkout cannot be turned into credits."""

    pass


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class StripeService:
    """Service for Stripe payment integration."""

    def __init__(self, ledger: CreditLedger):
        """Initialize Stripe service.

        Args:
            ledger: Credit ledger that receives purchases
        """
        self.ledger = ledger

    @staticmethod
    def get_packages() -> list[CreditPackage]:
        return CREDIT_PACKAGES.copy()

    @staticmethod
    def get_package(package_id: str) -> CreditPackage:
        """Get a specific credit package by ID.

        Raises:
            InvalidPackageError: If package ID is not found
        """
        package = PACKAGE_LOOKUP.get(package_id)
        if not package:
            raise InvalidPackageError(
                f"Invalid package ID: {package_id}. "
                f"Valid packages: {', '.join(PACKAGE_LOOKUP.keys())}"
            )
        return package

    async def create_checkout_session(
        self,
        account_id: str,
        customer_email: str,
        package_id: str,
        quantity: int,
        success_url: str,
        cancel_url: str,
    ) -> tuple[str, str, Optional[int]]:
        """Create a Stripe checkout session for a credit purchase.

        Args:
            account_id: Account making the purchase
            customer_email: Prefilled checkout email
            package_id: Credit package ID to purchase
            quantity: Number of packages
            success_url: URL to redirect after successful payment
            cancel_url: URL to redirect if user cancels

        Returns:
            Tuple of (session_id, checkout_url, expires_at)

        Raises:
            InvalidPackageError: If package ID is invalid
            StripeServiceError: If checkout session creation fails
        """
        package = self.get_package(package_id)

        logger.info(
            f"Creating checkout session for account {account_id}, "
            f"{quantity} x {package_id} ({package.credits} credits, {package.price_display})"
        )

        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": package.currency,
                            "product_data": {
                                "name": package.name,
                                "description": f"{package.credits} AI headshot credits",
                            },
                            "unit_amount": package.price_cents,
                        },
                        "quantity": quantity,
                    }
                ],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=customer_email,
                client_reference_id=account_id,
                metadata={
                    "account_id": account_id,
                    "package_id": package_id,
                    "credits": str(package.credits),
                    "quantity": str(quantity),
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe API error creating checkout session: {e}")
            raise StripeServiceError(f"Failed to create checkout session: {e}")

        logger.info(f"Checkout session created: {session.id} for account {account_id}")
        return session.id, session.url, session.expires_at

    async def retrieve_session_status(self, session_id: str) -> dict:
        """Look up a checkout session.

        Raises:
            StripeServiceError: If the session cannot be retrieved
        """
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe API error retrieving session {session_id}: {e}")
            raise StripeServiceError(f"Failed to retrieve checkout session: {e}")

        metadata = session.get("metadata") or {}
        customer_details = session.get("customer_details") or {}
        return {
            "session_id": session["id"],
            "status": session.get("status"),
            "payment_status": session.get("payment_status"),
            "customer_email": customer_details.get("email"),
            "package_id": metadata.get("package_id"),
            "credits": _to_int(metadata.get("credits")),
            "quantity": _to_int(metadata.get("quantity")),
        }

    @staticmethod
    def verify_webhook_signature(
        payload: bytes,
        signature: str,
        webhook_secret: Optional[str] = None,
    ) -> stripe.Event:
        """Verify Stripe webhook signature and parse event.

        Raises:
            WebhookVerificationError: If signature verification fails
        """
        secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

        if not secret:
            raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise WebhookVerificationError("Invalid webhook payload")
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid webhook signature: {e}")
            raise WebhookVerificationError("Invalid webhook signature")

        logger.info(f"Webhook verified: {event['type']} ({event['id']})")
        return event

    async def purchase_credits(
        self,
        account_id: str,
        package_id: str,
        quantity: int = 1,
        *,
        external_ref: Optional[str] = None,
    ) -> tuple[int, int]:
        """Grant the credits of `quantity` packages as a purchase entry.

        Returns:
            Tuple of (credits granted, new balance)

        Raises:
            InvalidPackageError: If package ID is invalid
            AccountNotFoundError: If the account does not exist
            DuplicateEntryError: If external_ref was already granted
        """
        package = self.get_package(package_id)
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        credits = package.credits * quantity
        new_balance = await self.ledger.apply_delta(
            account_id,
            credits,
            LedgerCategory.PURCHASE,
            f"Purchased {credits} credits - {package.name}",
            external_ref=external_ref,
        )
        return credits, new_balance

    async def process_checkout_completed(self, event: stripe.Event) -> dict:
        """Process a checkout.session.completed webhook event.

        Credits are granted once per event id; redelivered events are
        acknowledged without a second grant.

        Raises:
            PaymentProcessingError: If the session cannot be credited
        """
        session = event["data"]["object"]
        event_id = event["id"]

        metadata = session.get("metadata") or {}
        account_id = metadata.get("account_id")
        package_id = metadata.get("package_id")
        quantity = _to_int(metadata.get("quantity")) or 1
        payment_status = session.get("payment_status")

        logger.info(
            f"Processing checkout.session.completed: "
            f"session={session['id']}, account={account_id}, package={package_id}, "
            f"quantity={quantity}, status={payment_status}"
        )

        if not account_id or not package_id:
            raise PaymentProcessingError(
                f"Missing metadata in session {session['id']}: "
                f"account_id={account_id}, package_id={package_id}"
            )

        if payment_status != "paid":
            logger.warning(
                f"Checkout session {session['id']} status is '{payment_status}', "
                f"not 'paid'. Skipping credit grant."
            )
            return {"success": False, "reason": f"Payment status is {payment_status}"}

        try:
            credits, new_balance = await self.purchase_credits(
                account_id, package_id, quantity, external_ref=event_id
            )
        except DuplicateEntryError:
            logger.warning(
                f"Duplicate webhook event {event_id} for account {account_id}, "
                f"credits already granted"
            )
            return {"success": True, "duplicate": True}
        except (InvalidPackageError, AccountNotFoundError, ValueError) as e:
            logger.error(f"Failed to grant credits for event {event_id}: {e}")
            raise PaymentProcessingError(f"Failed to grant credits: {e}")

        logger.info(
            f"Granted {credits} credits to account {account_id}. New balance: {new_balance}"
        )
        return {
            "success": True,
            "account_id": account_id,
            "credits_granted": credits,
            "new_balance": new_balance,
        }

    async def process_webhook_event(self, event: stripe.Event) -> dict:
        """Route a verified webhook event to its handler."""
        event_type = event["type"]
        logger.info(f"Processing webhook event: {event_type} ({event['id']})")

        if event_type == "checkout.session.completed":
            return await self.process_checkout_completed(event)
        elif event_type == "payment_intent.payment_failed":
            payment_intent = event["data"]["object"]
            logger.warning(
                f"Payment failed: {payment_intent['id']}, "
                f"error={payment_intent.get('last_payment_error')}"
            )
            return {"success": True, "event_type": event_type, "logged": True}
        else:
            logger.info(f"Ignoring unhandled webhook event type: {event_type}")
            return {"success": True, "event_type": event_type, "ignored": True}


def get_stripe_service(ledger: Optional[CreditLedger] = None) -> StripeService:
    """Factory function to create StripeService instance."""
    return StripeService(ledger or get_credit_ledger())
