"""Reserve, execute and settle costed generations.

The protocol for every generation:
1. Reserve the cost in the ledger (fails fast on insufficient balance).
2. Run the provider with a timeout. No lock is held while it runs.
3. Capture on success; refund on any failure, timeout or cancellation.

Reservations that are never settled (process crash between steps 1 and 3)
are refunded by `reconcile_stale_reservations`, which the arq worker runs on
a schedule.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from headshot_studio.core.config import settings
from headshot_studio.models.generation import GenerationKind, GenerationRecord
from headshot_studio.models.reservation import Reservation
from headshot_studio.providers.base import GenerationProvider
from headshot_studio.providers.errors import ProviderFailure, ProviderTimeoutError
from headshot_studio.services.alerts import AlertSink, LoggingAlertSink
from headshot_studio.services.credit_ledger import CreditLedger
from headshot_studio.services.errors import ReservationClosedError, SettlementInconsistency

logger = logging.getLogger(__name__)

USAGE_DESCRIPTIONS = {
    GenerationKind.HEADSHOT: "Generated professional headshot",
    GenerationKind.IMAGE_EDIT: "Generated image edit",
}


@dataclass
class GenerationOutcome:
    """Result of a captured generation."""

    record: GenerationRecord
    balance: int


@dataclass
class ReconciliationReport:
    """Counts from one reconciliation sweep."""

    examined: int = 0
    refunded: int = 0
    already_settled: int = 0
    failed: int = 0


class GenerationService:
    """Runs generations against the ledger with at-most-once settlement."""

    def __init__(
        self,
        ledger: CreditLedger,
        provider: GenerationProvider,
        alerts: Optional[AlertSink] = None,
        timeout: Optional[float] = None,
        cost: Optional[int] = None,
    ):
        """Initialize the generation service.

        Args:
            ledger: Credit ledger holding the balances
            provider: Provider that executes generations
            alerts: Sink for settlement inconsistencies
            timeout: Provider timeout in seconds (defaults to settings)
            cost: Credits per generation (defaults to settings)
        """
        self.ledger = ledger
        self.provider = provider
        self.alerts = alerts or LoggingAlertSink()
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        self.cost = settings.GENERATION_COST if cost is None else cost

    async def generate(
        self,
        account_id: str,
        kind: GenerationKind,
        parameters: dict[str, Any],
        image: bytes,
        mime_type: str,
    ) -> GenerationOutcome:
        """Charge, run and settle one generation.

        Args:
            account_id: Account paying for the generation
            kind: Generation product
            parameters: Model options, stored on the record
            image: Uploaded source image (never persisted)
            mime_type: MIME type of the upload

        Returns:
            GenerationOutcome with the completed record and new balance

        Raises:
            InsufficientBalanceError: Balance below cost; provider not invoked
            AccountNotFoundError: Unknown account; provider not invoked
            ProviderFailure: Generation failed and was refunded (`.refunded`,
                `.record` and `.balance` describe the settled state)
            ReservationClosedError: The sweep refunded the reservation before
                the result arrived
            SettlementInconsistency: The refund itself failed
        """
        kind = GenerationKind(kind)
        reservation = await self.ledger.reserve(
            account_id,
            self.cost,
            kind,
            parameters,
            USAGE_DESCRIPTIONS[kind],
        )
        logger.info(
            f"Starting {kind.value} generation for account {account_id} "
            f"(reservation {reservation.id}, provider {self.provider.name})"
        )

        try:
            result_url = await asyncio.wait_for(
                self.provider.generate(kind, parameters, image, mime_type),
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            logger.warning(f"Generation for reservation {reservation.id} cancelled, refunding")
            await asyncio.shield(
                self._refund(reservation, "Generation cancelled before completion")
            )
            raise
        except asyncio.TimeoutError as e:
            failure = ProviderTimeoutError(
                f"Generation did not finish within {self.timeout} seconds"
            )
            failure.__cause__ = e
        except ProviderFailure as e:
            failure = e
        except Exception as e:
            logger.exception(f"Unexpected provider error for reservation {reservation.id}")
            failure = ProviderFailure(f"Provider error: {e}")
            failure.__cause__ = e
        else:
            return await self._capture(reservation, result_url)

        logger.warning(f"Generation for reservation {reservation.id} failed: {failure}")
        # record is None when the sweep refunded first
        failure.record = await self._refund(reservation, str(failure))
        failure.refunded = True
        failure.balance = await self.ledger.get_balance(account_id)
        raise failure

    async def _capture(self, reservation: Reservation, result_url: str) -> GenerationOutcome:
        try:
            record = await self.ledger.capture(reservation.id, result_url)
        except ReservationClosedError:
            logger.error(
                f"Reservation {reservation.id} was settled before its result arrived; "
                f"discarding {result_url}"
            )
            raise

        balance = await self.ledger.get_balance(reservation.account_id)
        logger.info(f"Generation {record.id} completed. Balance: {balance}")
        return GenerationOutcome(record=record, balance=balance)

    async def _refund(self, reservation: Reservation, reason: str) -> Optional[GenerationRecord]:
        """Refund a reservation, alerting operators if that is impossible."""
        try:
            return await self.ledger.refund(reservation.id, reason)
        except Exception as e:
            inconsistency = SettlementInconsistency(
                reservation_id=reservation.id,
                account_id=reservation.account_id,
                cost=reservation.cost,
                reason=str(e) or type(e).__name__,
            )
            await self.alerts.settlement_inconsistency(inconsistency)
            raise inconsistency from e

    async def reconcile_stale_reservations(
        self,
        older_than: Optional[timedelta] = None,
        limit: int = 100,
    ) -> ReconciliationReport:
        """Refund reservations left pending longer than `older_than`.

        A failed refund has already been alerted on; the sweep moves on to
        the next reservation and reports the count.
        """
        if older_than is None:
            older_than = timedelta(seconds=settings.RESERVATION_TTL_SECONDS)

        report = ReconciliationReport()
        stale = await self.ledger.list_stale_reservations(older_than, limit=limit)
        for reservation in stale:
            report.examined += 1
            try:
                record = await self._refund(
                    reservation, "Reservation expired before the generation settled"
                )
            except SettlementInconsistency:
                report.failed += 1
                continue

            if record is None:
                report.already_settled += 1
            else:
                report.refunded += 1

        if report.examined:
            logger.info(
                f"Reconciled {report.examined} stale reservations: "
                f"{report.refunded} refunded, {report.already_settled} already settled, "
                f"{report.failed} failed"
            )
        return report
