"""API router for authentication endpoints.

Provides endpoints for:
- Account signup (with welcome bonus)
- Login
- Logout
- Get current account
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from headshot_studio.api.deps import get_auth_service, get_current_account, get_token_from_request
from headshot_studio.core.config import settings
from headshot_studio.models.account import Account
from headshot_studio.schemas.auth import (
    AccountResponse,
    AuthMessageResponse,
    AuthResponse,
    LoginRequest,
    SignupRequest,
)
from headshot_studio.services.auth_service import AuthService, InvalidCredentialsError
from headshot_studio.services.errors import AccountAlreadyExistsError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_token(response: Response, account: Account) -> AuthResponse:
    """Create an access token, set it as a cookie and build the response body."""
    access_token, expires_in = AuthService.create_access_token(account.id)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=access_token,
        max_age=expires_in,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        path="/",
    )
    return AuthResponse(
        access_token=access_token,
        expires_in=expires_in,
        account=AccountResponse.model_validate(account),
    )


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Create an account with the welcome credit bonus and log in.",
)
async def signup(
    request: SignupRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Register a new account.

    The account and its welcome bonus are created in one transaction, so the
    returned balance is final.

    Raises:
        HTTPException: 400 if email is already registered
    """
    try:
        account = await auth_service.register_account(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
        )
    except AccountAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Account registered and logged in: {account.email}")
    return _issue_token(response, account)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="Authenticate with email and password.",
)
async def login(
    request: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Authenticate an account with email and password.

    Raises:
        HTTPException: 401 if credentials are invalid
    """
    try:
        account = await auth_service.authenticate(email=request.email, password=request.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Account logged in: {account.email}")
    return _issue_token(response, account)


@router.post(
    "/logout",
    response_model=AuthMessageResponse,
    summary="Log out",
    description="Revoke the current access token and clear the auth cookie.",
)
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_token_from_request),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthMessageResponse:
    if token:
        await auth_service.logout(token)
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return AuthMessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get current account",
)
async def get_me(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.model_validate(current_account)
