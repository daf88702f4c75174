"""Business logic services."""

from headshot_studio.services.credit_ledger import CreditLedger, get_credit_ledger
from headshot_studio.services.errors import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    DuplicateEntryError,
    InsufficientBalanceError,
    LedgerError,
    ReservationClosedError,
    SettlementInconsistency,
)
from headshot_studio.services.generation_service import (
    GenerationOutcome,
    GenerationService,
    ReconciliationReport,
)

__all__ = [
    "CreditLedger",
    "get_credit_ledger",
    "GenerationService",
    "GenerationOutcome",
    "ReconciliationReport",
    "LedgerError",
    "AccountNotFoundError",
    "AccountAlreadyExistsError",
    "InsufficientBalanceError",
    "DuplicateEntryError",
    "ReservationClosedError",
    "SettlementInconsistency",
]
