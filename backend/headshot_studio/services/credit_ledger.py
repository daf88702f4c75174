"""Credit ledger: the single owner of account balances.

This service provides:
- Atomic opening of accounts together with their signup bonus
- Atomic balance deltas paired with an append-only ledger entry
- Overdraft protection via a conditional UPDATE (no check-then-act)
- Reservations for costed work, captured or refunded exactly once
- Newest-first history reads
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from headshot_studio.core.config import settings
from headshot_studio.core.database import get_session_factory
from headshot_studio.models._types import new_id, utcnow
from headshot_studio.models.account import Account
from headshot_studio.models.generation import GenerationKind, GenerationRecord, GenerationStatus
from headshot_studio.models.ledger_entry import LedgerCategory, LedgerEntry
from headshot_studio.models.reservation import Reservation, ReservationStatus
from headshot_studio.services.errors import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    DuplicateEntryError,
    InsufficientBalanceError,
    ReservationClosedError,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


def _validate_delta(delta: int) -> None:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValueError("delta must be a non-zero integer")


def _validate_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be at least 1")
    return min(limit, MAX_HISTORY_LIMIT)


class CreditLedger:
    """Service for account balances, ledger entries and reservations.

    Every public method runs in its own short transaction obtained from the
    injected session factory, so one instance can be shared by concurrent
    request handlers.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        signup_bonus: Optional[int] = None,
    ):
        """Initialize the credit ledger.

        Args:
            session_factory: Factory for sessions against the authoritative store
            signup_bonus: Credits granted on account creation (defaults to settings)
        """
        self._session_factory = session_factory
        self.signup_bonus = (
            settings.SIGNUP_BONUS_CREDITS if signup_bonus is None else signup_bonus
        )

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        email: str,
        password_hash: str,
        full_name: str = "",
    ) -> Account:
        """Create an account and its signup bonus in one transaction.

        Args:
            email: Login email (stored lower-cased)
            password_hash: Already hashed password
            full_name: Optional display name

        Returns:
            The new Account

        Raises:
            AccountAlreadyExistsError: If the email is already registered
        """
        email = email.lower()
        bonus = max(int(self.signup_bonus), 0)

        async with self._session_factory() as db:
            try:
                async with db.begin():
                    account = Account(
                        id=new_id(),
                        email=email,
                        password_hash=password_hash,
                        full_name=full_name or "",
                        balance=bonus,
                        total_credits_purchased=0,
                    )
                    db.add(account)
                    await db.flush()

                    if bonus > 0:
                        db.add(
                            LedgerEntry(
                                account_id=account.id,
                                delta=bonus,
                                category=LedgerCategory.BONUS,
                                description=f"Welcome bonus - {bonus} free credits",
                            )
                        )
            except IntegrityError as e:
                raise AccountAlreadyExistsError(
                    f"Account with email {email} already exists"
                ) from e

        logger.info(f"Opened account {account.id} for {email} with {bonus} credits")
        return account

    async def get_account(self, account_id: str) -> Account:
        """Get an account by ID.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        async with self._session_factory() as db:
            account = await db.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Get an account by email, or None."""
        async with self._session_factory() as db:
            result = await db.execute(select(Account).where(Account.email == email.lower()))
            return result.scalar_one_or_none()

    async def get_balance(self, account_id: str) -> int:
        """Get the current balance of an account.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        async with self._session_factory() as db:
            balance = await db.scalar(select(Account.balance).where(Account.id == account_id))
        if balance is None:
            raise AccountNotFoundError(account_id)
        return balance

    # -------------------------------------------------------------------------
    # Balance mutation
    # -------------------------------------------------------------------------

    async def apply_delta(
        self,
        account_id: str,
        delta: int,
        category: LedgerCategory,
        description: str = "",
        *,
        external_ref: Optional[str] = None,
    ) -> int:
        """Atomically change a balance and append the matching ledger entry.

        Args:
            account_id: Account to change
            delta: Non-zero signed amount (negative = debit)
            category: Ledger category of the change
            description: Free-text description
            external_ref: Optional unique reference (e.g. Stripe event id)

        Returns:
            The balance after the change

        Raises:
            ValueError: If delta is zero or not an integer
            AccountNotFoundError: If the account does not exist
            InsufficientBalanceError: If a debit would overdraw the account
            DuplicateEntryError: If external_ref was already recorded
        """
        _validate_delta(delta)
        category = LedgerCategory(category)

        async with self._session_factory() as db:
            async with db.begin():
                balance = await self._apply_delta(
                    db,
                    account_id,
                    delta,
                    category,
                    description,
                    external_ref=external_ref,
                )

        logger.info(
            f"Applied {delta:+d} ({category.value}) to account {account_id}. "
            f"New balance: {balance}"
        )
        return balance

    async def _apply_delta(
        self,
        db: AsyncSession,
        account_id: str,
        delta: int,
        category: LedgerCategory,
        description: str,
        *,
        external_ref: Optional[str] = None,
        reservation_id: Optional[str] = None,
    ) -> int:
        """Apply a delta inside the caller's transaction.

        The conditional UPDATE is the serialization point: concurrent debits
        against the same row queue on its lock and each re-checks the
        predicate against the committed balance.
        """
        values: dict[str, Any] = {"balance": Account.balance + delta}
        if category == LedgerCategory.PURCHASE and delta > 0:
            values["total_credits_purchased"] = Account.total_credits_purchased + delta

        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.balance + delta >= 0)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        if result.rowcount != 1:
            current = await db.scalar(select(Account.balance).where(Account.id == account_id))
            if current is None:
                raise AccountNotFoundError(account_id)
            raise InsufficientBalanceError(required=-delta, available=current)

        db.add(
            LedgerEntry(
                account_id=account_id,
                delta=delta,
                category=category,
                description=description or "",
                external_ref=external_ref,
                reservation_id=reservation_id,
            )
        )
        try:
            await db.flush()
        except IntegrityError as e:
            if external_ref is not None:
                raise DuplicateEntryError(external_ref) from e
            raise

        return await db.scalar(select(Account.balance).where(Account.id == account_id))

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def list_history(
        self,
        account_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[LedgerEntry]:
        """Get the most recent ledger entries, newest first.

        Each call re-reads the store; no cursor is kept between calls.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        limit = _validate_limit(limit)
        async with self._session_factory() as db:
            if await db.get(Account, account_id) is None:
                raise AccountNotFoundError(account_id)
            result = await db.execute(
                select(LedgerEntry)
                .where(LedgerEntry.account_id == account_id)
                .order_by(LedgerEntry.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_generations(
        self,
        account_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[GenerationRecord]:
        """Get the most recent generation records, newest first."""
        limit = _validate_limit(limit)
        async with self._session_factory() as db:
            result = await db.execute(
                select(GenerationRecord)
                .where(GenerationRecord.account_id == account_id)
                .order_by(GenerationRecord.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    async def reserve(
        self,
        account_id: str,
        cost: int,
        kind: GenerationKind,
        parameters: Optional[dict[str, Any]] = None,
        description: str = "",
    ) -> Reservation:
        """Debit `cost` as a usage entry and persist a pending reservation.

        Raises:
            ValueError: If cost is not a positive integer
            AccountNotFoundError: If the account does not exist
            InsufficientBalanceError: If the account cannot cover the cost
        """
        if isinstance(cost, bool) or not isinstance(cost, int) or cost <= 0:
            raise ValueError("cost must be a positive integer")

        reservation = Reservation(
            id=new_id(),
            account_id=account_id,
            cost=cost,
            kind=GenerationKind(kind),
            parameters=dict(parameters or {}),
            description=description,
            status=ReservationStatus.PENDING,
        )

        async with self._session_factory() as db:
            async with db.begin():
                balance = await self._apply_delta(
                    db,
                    account_id,
                    -cost,
                    LedgerCategory.USAGE,
                    description,
                    reservation_id=reservation.id,
                )
                db.add(reservation)

        logger.info(
            f"Reserved {cost} credits for account {account_id} "
            f"(reservation {reservation.id}). New balance: {balance}"
        )
        return reservation

    async def _close_reservation(
        self,
        db: AsyncSession,
        reservation_id: str,
        status: ReservationStatus,
    ) -> Reservation:
        """Move a reservation out of PENDING inside the caller's transaction."""
        result = await db.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.status == ReservationStatus.PENDING,
            )
            .values(status=status, settled_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        reservation = await db.get(Reservation, reservation_id, populate_existing=True)

        if result.rowcount != 1:
            current = reservation.status.value if reservation is not None else None
            raise ReservationClosedError(reservation_id, current)
        return reservation

    async def capture(self, reservation_id: str, result_url: str) -> GenerationRecord:
        """Confirm a reservation and record the completed generation.

        Raises:
            ReservationClosedError: If the reservation was already settled
        """
        async with self._session_factory() as db:
            async with db.begin():
                reservation = await self._close_reservation(
                    db, reservation_id, ReservationStatus.CAPTURED
                )
                record = GenerationRecord(
                    account_id=reservation.account_id,
                    reservation_id=reservation.id,
                    kind=reservation.kind,
                    parameters=reservation.parameters,
                    result_url=result_url,
                    credits_charged=reservation.cost,
                    status=GenerationStatus.COMPLETED,
                )
                db.add(record)

        logger.info(f"Captured reservation {reservation_id} ({reservation.cost} credits)")
        return record

    async def refund(self, reservation_id: str, reason: str) -> Optional[GenerationRecord]:
        """Reverse a reservation and record the failed generation.

        The status change, the refund entry and the failed record are written
        in one transaction.

        Returns:
            The failed GenerationRecord, or None if the reservation had
            already been settled by someone else
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    reservation = await self._close_reservation(
                        db, reservation_id, ReservationStatus.REFUNDED
                    )
                    balance = await self._apply_delta(
                        db,
                        reservation.account_id,
                        reservation.cost,
                        LedgerCategory.REFUND,
                        f"Refund: {reservation.description}".strip(),
                        reservation_id=reservation.id,
                    )
                    record = GenerationRecord(
                        account_id=reservation.account_id,
                        reservation_id=reservation.id,
                        kind=reservation.kind,
                        parameters=reservation.parameters,
                        result_url=None,
                        credits_charged=0,
                        status=GenerationStatus.FAILED,
                        error_message=reason[:2000],
                    )
                    db.add(record)
        except ReservationClosedError as e:
            logger.warning(f"Skipping refund: {e}")
            return None

        logger.info(
            f"Refunded reservation {reservation_id} ({reservation.cost} credits) "
            f"to account {reservation.account_id}. New balance: {balance}"
        )
        return record

    async def list_stale_reservations(
        self,
        older_than: timedelta,
        limit: int = 100,
    ) -> list[Reservation]:
        """Get reservations still pending after `older_than`, oldest first."""
        cutoff = utcnow() - older_than
        async with self._session_factory() as db:
            result = await db.execute(
                select(Reservation)
                .where(
                    Reservation.status == ReservationStatus.PENDING,
                    Reservation.created_at < cutoff,
                )
                .order_by(Reservation.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())


def get_credit_ledger(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> CreditLedger:
    """Factory function to create a CreditLedger.

    Args:
        session_factory: Optional session factory (defaults to the app's)

    Returns:
        Configured CreditLedger instance
    """
    return CreditLedger(session_factory or get_session_factory())
