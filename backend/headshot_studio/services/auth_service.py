"""Authentication service for signup, login and access tokens.

This module provides:
- Password hashing with bcrypt
- JWT access token generation and validation
- Atomic signup (account + welcome bonus) through the credit ledger
- Token revocation for logout, shared by every process through Redis
"""

import logging
import time
from datetime import UTC, datetime, timedelta
from typing import Optional
from uuid import uuid4

import redis.asyncio as redis
from jose import JWTError, jwt
from passlib.context import CryptContext

from headshot_studio.core.config import settings
from headshot_studio.core.redis import get_redis
from headshot_studio.models.account import Account
from headshot_studio.schemas.auth import TokenPayload
from headshot_studio.services.credit_ledger import CreditLedger, get_credit_ledger
from headshot_studio.services.errors import AccountNotFoundError

logger = logging.getLogger(__name__)

# Password hashing context using bcrypt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

REVOKED_TOKEN_PREFIX = "auth:revoked:"


class AuthServiceError(Exception):
    """Base exception for authentication service errors."""

    pass


class InvalidCredentialsError(AuthServiceError):
    """Raised when login credentials are invalid."""

    pass


class InvalidTokenError(AuthServiceError):
    """Raised when a token is invalid or expired."""

    pass


class TokenRevokedError(AuthServiceError):
    """Raised when a revoked token is used."""

    pass


class TokenRevocationList:
    """Revoked access token ids in Redis, each expiring with its token."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @property
    def client(self) -> redis.Redis:
        return self._client if self._client is not None else get_redis()

    @staticmethod
    def key(jti: str) -> str:
        return f"{REVOKED_TOKEN_PREFIX}{jti}"

    async def revoke(self, jti: str, expires_at: int) -> None:
        """Revoke a token id until its expiry timestamp."""
        ttl = expires_at - int(time.time())
        if ttl <= 0:
            return
        await self.client.setex(self.key(jti), ttl, "1")
        logger.info(f"Token {jti} revoked for {ttl}s")

    async def is_revoked(self, jti: str) -> bool:
        return bool(await self.client.exists(self.key(jti)))


class AuthService:
    """Service class for authentication operations."""

    def __init__(
        self,
        ledger: CreditLedger,
        revocations: Optional[TokenRevocationList] = None,
    ):
        """Initialize auth service.

        Args:
            ledger: Credit ledger that owns the accounts
            revocations: Store of revoked token ids (defaults to the shared Redis)
        """
        self.ledger = ledger
        self.revocations = revocations or TokenRevocationList()

    # -------------------------------------------------------------------------
    # Password Hashing
    # -------------------------------------------------------------------------

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its bcrypt hash."""
        return pwd_context.verify(plain_password, hashed_password)

    # -------------------------------------------------------------------------
    # JWT Token Management
    # -------------------------------------------------------------------------

    @staticmethod
    def create_access_token(account_id: str) -> tuple[str, int]:
        """Create a JWT access token for an account.

        Args:
            account_id: Account ID

        Returns:
            Tuple of (token string, lifetime in seconds)
        """
        now = datetime.now(UTC)
        expire = now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": account_id,
            "type": "access",
            "jti": uuid4().hex,
            "exp": int(expire.timestamp()),
            "iat": int(now.timestamp()),
        }

        token = jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )

        return token, settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @staticmethod
    def decode_token(token: str) -> TokenPayload:
        """Decode and validate a JWT token.

        Raises:
            InvalidTokenError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
            )
            return TokenPayload(**payload)
        except (JWTError, TypeError, ValueError) as e:
            logger.warning(f"Token decode error: {e}")
            raise InvalidTokenError("Invalid or expired token")

    # -------------------------------------------------------------------------
    # Account Operations
    # -------------------------------------------------------------------------

    async def register_account(
        self,
        email: str,
        password: str,
        full_name: str = "",
    ) -> Account:
        """Register a new account with its welcome bonus.

        Args:
            email: Account email address
            password: Plain text password
            full_name: Optional display name

        Returns:
            Newly created Account

        Raises:
            AccountAlreadyExistsError: If email is already registered
        """
        password_hash = self.hash_password(password)
        account = await self.ledger.open_account(email, password_hash, full_name)
        logger.info(f"New account registered: {account.email} (ID: {account.id})")
        return account

    async def authenticate(self, email: str, password: str) -> Account:
        """Authenticate an account with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
        """
        account = await self.ledger.find_account_by_email(email)

        if not account:
            logger.warning(f"Login attempt for non-existent account: {email}")
            raise InvalidCredentialsError("Invalid email or password")

        if not self.verify_password(password, account.password_hash):
            logger.warning(f"Invalid password for account: {email}")
            raise InvalidCredentialsError("Invalid email or password")

        logger.info(f"Account authenticated: {account.email}")
        return account

    async def logout(self, access_token: str) -> None:
        """Revoke an access token for the rest of its lifetime.

        A token that no longer decodes is already unusable and is ignored.
        """
        try:
            payload = self.decode_token(access_token)
        except InvalidTokenError:
            return
        if payload.jti:
            await self.revocations.revoke(payload.jti, payload.exp)

    async def validate_access_token(self, token: str) -> Account:
        """Validate an access token and return the associated account.

        Raises:
            InvalidTokenError: If token is invalid or the account is gone
            TokenRevokedError: If token has been revoked
        """
        payload = self.decode_token(token)

        if payload.type != "access" or not payload.jti:
            raise InvalidTokenError("Invalid token type")

        if await self.revocations.is_revoked(payload.jti):
            raise TokenRevokedError("Token has been revoked")

        try:
            return await self.ledger.get_account(payload.sub)
        except AccountNotFoundError:
            raise InvalidTokenError("Account not found")


def get_auth_service(
    ledger: Optional[CreditLedger] = None,
    revocations: Optional[TokenRevocationList] = None,
) -> AuthService:
    """Factory function to create AuthService instance."""
    return AuthService(ledger or get_credit_ledger(), revocations)
