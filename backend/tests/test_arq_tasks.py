"""Tests for the ARQ maintenance worker."""

from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import FakeProvider, RecordingAlertSink
from headshot_studio.core.arq_config import parse_redis_url
from headshot_studio.models import GenerationKind, Reservation
from headshot_studio.models._types import utcnow
from headshot_studio.services.generation_service import GenerationService
from headshot_studio.workers.arq_tasks import WorkerSettings, reconcile_stale_reservations


class TestRedisSettings:
    def test_full_url(self):
        result = parse_redis_url("redis://:s3cret@cache.internal:6380/2")

        assert result.host == "cache.internal"
        assert result.port == 6380
        assert result.password == "s3cret"
        assert result.database == 2

    def test_defaults(self):
        result = parse_redis_url("redis://redis")

        assert result.host == "redis"
        assert result.port == 6379
        assert result.password is None
        assert result.database == 0

    def test_invalid_url(self):
        with pytest.raises(ValueError):
            parse_redis_url("http://not-redis")


class TestWorkerSettings:
    def test_reconciliation_is_scheduled(self):
        assert reconcile_stale_reservations in WorkerSettings.functions

        job = WorkerSettings.cron_jobs[0]
        assert job.coroutine is reconcile_stale_reservations
        assert job.run_at_startup is True


@pytest.mark.asyncio
async def test_reconcile_task_refunds_stale_reservations(ledger, account, session_factory):
    service = GenerationService(ledger, FakeProvider(), RecordingAlertSink(), cost=1)
    await ledger.reserve(account.id, 1, GenerationKind.HEADSHOT)
    async with session_factory() as db:
        async with db.begin():
            await db.execute(
                update(Reservation).values(created_at=utcnow() - timedelta(hours=1))
            )

    result = await reconcile_stale_reservations({"generation_service": service})

    assert result == {
        "status": "completed",
        "examined": 1,
        "refunded": 1,
        "already_settled": 0,
        "failed": 0,
    }
    assert await ledger.get_balance(account.id) == 10
