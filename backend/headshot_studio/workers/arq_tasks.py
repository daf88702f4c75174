"""ARQ worker tasks for ledger maintenance.

Tasks include:
- reconcile_stale_reservations: refund reservations orphaned by a crash

Usage:
    Start worker with: arq headshot_studio.workers.arq_tasks.WorkerSettings
"""

import logging
from dataclasses import asdict
from datetime import timedelta

from arq import cron

from headshot_studio.core.arq_config import get_redis_settings
from headshot_studio.core.config import settings
from headshot_studio.core.database import close_db
from headshot_studio.core.logging_config import configure_logging
from headshot_studio.core.redis import close_redis
from headshot_studio.providers.replicate import ReplicateProvider
from headshot_studio.services.alerts import get_alert_sink
from headshot_studio.services.credit_ledger import get_credit_ledger
from headshot_studio.services.generation_service import GenerationService

logger = logging.getLogger(__name__)


def build_generation_service() -> GenerationService:
    return GenerationService(get_credit_ledger(), ReplicateProvider(), get_alert_sink())


async def reconcile_stale_reservations(ctx: dict) -> dict:
    """Refund reservations still pending after RESERVATION_TTL_SECONDS.

    A reservation outlives its request only if the process died between
    charging and settling; refunding it restores the balance.

    Args:
        ctx: ARQ context

    Returns:
        Dict with sweep counts
    """
    service = ctx.get("generation_service") or build_generation_service()
    report = await service.reconcile_stale_reservations(
        older_than=timedelta(seconds=settings.RESERVATION_TTL_SECONDS),
    )

    if report.failed:
        logger.error(f"Reconciliation finished with {report.failed} failed refunds")
    else:
        logger.info(f"Reconciliation completed: {report.refunded} reservations refunded")

    return {"status": "completed", **asdict(report)}


class WorkerSettings:
    """ARQ Worker configuration.

    Usage: arq headshot_studio.workers.arq_tasks.WorkerSettings
    """

    redis_settings = get_redis_settings()
    queue_name = "headshot_studio:maintenance"

    max_jobs = 1
    job_timeout = 300
    max_tries = 1

    functions = [reconcile_stale_reservations]

    # Sweep every 5 minutes
    cron_jobs = [
        cron(reconcile_stale_reservations, minute=set(range(0, 60, 5)), run_at_startup=True),
    ]

    @staticmethod
    async def on_startup(ctx: dict) -> None:
        """Called when worker starts."""
        configure_logging()
        logger.info("ARQ Worker starting up...")
        ctx["generation_service"] = build_generation_service()
        logger.info("ARQ Worker ready")

    @staticmethod
    async def on_shutdown(ctx: dict) -> None:
        """Called when worker shuts down."""
        logger.info("ARQ Worker shutting down...")
        await close_redis()
        await close_db()
        logger.info("ARQ Worker shutdown complete")
