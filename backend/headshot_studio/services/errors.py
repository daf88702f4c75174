"""Exceptions raised by the credit ledger and the generation protocol."""

from typing import Optional


class LedgerError(Exception):
    """Base exception for credit ledger errors."""

    pass


class AccountNotFoundError(LedgerError):
    """Raised when an account identifier is unknown."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountAlreadyExistsError(LedgerError):
    """Raised when opening an account for an email that is taken."""

    pass


class InsufficientBalanceError(LedgerError):
    """Raised when a debit would take the balance below zero.

    Expected outcome: nothing was written and the costed action must not run.
    """

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient credits: required {required}, available {available}"
        )

    @property
    def shortfall(self) -> int:
        return self.required - self.available


class DuplicateEntryError(LedgerError):
    """Raised when a ledger entry with the same external reference exists."""

    def __init__(self, external_ref: str):
        self.external_ref = external_ref
        super().__init__(f"Ledger entry already recorded for {external_ref}")


class ReservationClosedError(LedgerError):
    """Raised when settling a reservation that already left the pending state."""

    def __init__(self, reservation_id: str, status: Optional[str] = None):
        self.reservation_id = reservation_id
        self.status = status
        super().__init__(
            f"Reservation {reservation_id} is no longer pending (status={status})"
        )


class SettlementInconsistency(LedgerError):
    """The refund after a failed generation could not be applied.

    The account was charged and received nothing. Always reported on the
    operator alert channel before being raised.
    """

    def __init__(self, reservation_id: str, account_id: str, cost: int, reason: str):
        self.reservation_id = reservation_id
        self.account_id = account_id
        self.cost = cost
        self.reason = reason
        super().__init__(
            f"Refund of {cost} credits for reservation {reservation_id} "
            f"(account {account_id}) failed: {reason}"
        )
