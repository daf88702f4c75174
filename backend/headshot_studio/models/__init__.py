"""SQLAlchemy models for Headshot Studio."""

from headshot_studio.models.account import Account
from headshot_studio.models.generation import GenerationKind, GenerationRecord, GenerationStatus
from headshot_studio.models.ledger_entry import LedgerCategory, LedgerEntry
from headshot_studio.models.reservation import Reservation, ReservationStatus

__all__ = [
    "Account",
    "LedgerEntry",
    "LedgerCategory",
    "Reservation",
    "ReservationStatus",
    "GenerationRecord",
    "GenerationKind",
    "GenerationStatus",
]
