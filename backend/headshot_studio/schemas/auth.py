"""Pydantic schemas for authentication endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Schema for account signup request."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(
        ...,
        min_length=6,
        max_length=72,
        description="Account password (6-72 characters)",
    )
    full_name: str = Field(default="", max_length=200, description="Display name")


class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., description="Account password")


class AccountResponse(BaseModel):
    """Schema for account information."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Account ID")
    email: str = Field(..., description="Account email address")
    full_name: str = Field(default="", description="Display name")
    credits: int = Field(..., validation_alias="balance", description="Current credit balance")
    total_credits_purchased: int = Field(..., description="Lifetime purchased credits")
    created_at: Optional[datetime] = Field(None, description="Account creation timestamp")


class AuthResponse(BaseModel):
    """Schema for signup/login responses.

    The access token is also set as an HTTP-only cookie.
    """

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    account: AccountResponse


class AuthMessageResponse(BaseModel):
    """Schema for simple message responses."""

    message: str = Field(..., description="Response message")


class TokenPayload(BaseModel):
    """Schema for JWT token payload (internal use)."""

    sub: str = Field(..., description="Subject (account ID)")
    type: str = Field(..., description="Token type")
    jti: Optional[str] = Field(None, description="Token ID")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
