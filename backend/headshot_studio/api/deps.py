"""API dependencies for FastAPI route handlers.

This module provides dependency injection functions for:
- The credit ledger and the services built on it
- Authentication (JWT from Bearer header or auth cookie)
- The generation provider and operator alert sink
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from headshot_studio.core.config import settings
from headshot_studio.models.account import Account
from headshot_studio.providers.base import GenerationProvider
from headshot_studio.providers.replicate import ReplicateProvider
from headshot_studio.services.alerts import AlertSink
from headshot_studio.services.alerts import get_alert_sink as build_alert_sink
from headshot_studio.services.auth_service import (
    AuthService,
    InvalidTokenError,
    TokenRevocationList,
    TokenRevokedError,
)
from headshot_studio.services.credit_ledger import CreditLedger
from headshot_studio.services.credit_ledger import get_credit_ledger as build_credit_ledger
from headshot_studio.services.generation_service import GenerationService
from headshot_studio.services.stripe_service import StripeService

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)


def get_credit_ledger() -> CreditLedger:
    """Dependency to get the credit ledger."""
    return build_credit_ledger()


def get_token_revocations() -> TokenRevocationList:
    """Dependency to get the shared revoked-token store."""
    return TokenRevocationList()


def get_auth_service(
    ledger: CreditLedger = Depends(get_credit_ledger),
    revocations: TokenRevocationList = Depends(get_token_revocations),
) -> AuthService:
    return AuthService(ledger, revocations)


def get_stripe_service(ledger: CreditLedger = Depends(get_credit_ledger)) -> StripeService:
    return StripeService(ledger)


def get_generation_provider() -> GenerationProvider:
    """Dependency to get the configured generation provider."""
    return ReplicateProvider()


def get_alert_sink() -> AlertSink:
    return build_alert_sink()


def get_generation_service(
    ledger: CreditLedger = Depends(get_credit_ledger),
    provider: GenerationProvider = Depends(get_generation_provider),
    alerts: AlertSink = Depends(get_alert_sink),
) -> GenerationService:
    """Dependency to get a GenerationService wired to the request's collaborators."""
    return GenerationService(ledger, provider, alerts)


def get_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Extract the raw token from the Authorization header or the auth cookie.

    Args:
        request: Incoming request
        credentials: HTTP Bearer credentials

    Returns:
        Token string if present, None otherwise
    """
    if credentials:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_account(
    token: Optional[str] = Depends(get_token_from_request),
    auth_service: AuthService = Depends(get_auth_service),
) -> Account:
    """Dependency to get the current authenticated account.

    Raises:
        HTTPException: 401 if token is missing, invalid, revoked or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await auth_service.validate_access_token(token)
    except TokenRevokedError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
