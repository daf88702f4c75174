"""Pydantic schemas for Stripe payment integration.

This module defines request and response models for:
- Credit package definitions
- Checkout session creation
- Checkout session status
"""

from typing import Optional

from pydantic import BaseModel, Field, HttpUrl


class CreditPackage(BaseModel):
    """Credit package available for purchase."""

    id: str = Field(description="Package identifier")
    name: str = Field(description="Human-readable package name")
    credits: int = Field(ge=1, description="Number of credits included")
    price_cents: int = Field(ge=0, description="Price in cents (USD)")
    currency: str = Field(default="usd", description="ISO currency code")
    popular: bool = Field(default=False, description="Mark as popular/recommended")

    @property
    def price_display(self) -> str:
        """Format price for display (e.g., $9.99)."""
        return f"${self.price_cents / 100:.2f}"


class CreditPackagesResponse(BaseModel):
    """Response containing all available credit packages."""

    packages: list[CreditPackage] = Field(description="Available credit packages")
    currency: str = Field(default="usd", description="Currency for all packages")


class CheckoutRequest(BaseModel):
    """Request to create a Stripe checkout session."""

    package_id: str = Field(description="Credit package ID to purchase")
    quantity: int = Field(default=1, ge=1, le=10, description="Number of packages")
    success_url: HttpUrl = Field(description="URL to redirect to after successful payment")
    cancel_url: HttpUrl = Field(description="URL to redirect to if user cancels")


class CheckoutResponse(BaseModel):
    """Response containing Stripe checkout session details."""

    session_id: str = Field(description="Stripe checkout session ID")
    checkout_url: str = Field(description="URL to redirect user to Stripe checkout")
    expires_at: Optional[int] = Field(default=None, description="Unix timestamp when session expires")


class SessionStatusResponse(BaseModel):
    """Checkout session status as reported by Stripe."""

    session_id: str = Field(description="Checkout session ID")
    status: Optional[str] = Field(default=None, description="Session status (open, complete, expired)")
    payment_status: Optional[str] = Field(default=None, description="Payment status")
    customer_email: Optional[str] = Field(default=None, description="Customer email")
    package_id: Optional[str] = Field(default=None, description="Purchased package")
    credits: Optional[int] = Field(default=None, description="Credits per package")
    quantity: Optional[int] = Field(default=None, description="Number of packages")

