"""Operator alert channel for settlement inconsistencies.

A failed refund leaves an account charged for work it never received. That
state must never be silent, so every sink logs at CRITICAL first and the
Redis sink additionally publishes a JSON message that on-call tooling can
subscribe to.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis

from headshot_studio.core.config import settings
from headshot_studio.core.redis import get_redis
from headshot_studio.models._types import utcnow
from headshot_studio.services.errors import SettlementInconsistency

logger = logging.getLogger(__name__)


class AlertSink(ABC):
    """Receives settlement inconsistencies."""

    @abstractmethod
    async def settlement_inconsistency(self, error: SettlementInconsistency) -> None:
        """Report a refund that could not be applied."""


class LoggingAlertSink(AlertSink):
    """Alert sink that only writes a CRITICAL log line."""

    async def settlement_inconsistency(self, error: SettlementInconsistency) -> None:
        logger.critical(
            f"SETTLEMENT INCONSISTENCY: account {error.account_id} was charged "
            f"{error.cost} credits for reservation {error.reservation_id} and the "
            f"refund failed: {error.reason}"
        )


class RedisAlertSink(LoggingAlertSink):
    """Alert sink that logs and publishes to a Redis pub/sub channel."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        channel: Optional[str] = None,
    ):
        self.client = client
        self.channel = channel or settings.ALERT_CHANNEL

    @staticmethod
    def build_message(error: SettlementInconsistency) -> str:
        return json.dumps(
            {
                "type": "settlement_inconsistency",
                "reservation_id": error.reservation_id,
                "account_id": error.account_id,
                "cost": error.cost,
                "reason": error.reason,
                "timestamp": utcnow().isoformat(),
            }
        )

    async def settlement_inconsistency(self, error: SettlementInconsistency) -> None:
        await super().settlement_inconsistency(error)

        # Best effort once the CRITICAL line is written
        try:
            client = self.client if self.client is not None else get_redis()
            receivers = await client.publish(self.channel, self.build_message(error))
            logger.debug(f"Published settlement alert to {self.channel}, {receivers} subscribers")
        except (redis.RedisError, OSError) as e:
            logger.error(f"Failed to publish settlement alert to {self.channel}: {e}")


def get_alert_sink() -> AlertSink:
    """Factory function for the configured alert sink."""
    if settings.ENVIRONMENT == "test":
        return LoggingAlertSink()
    return RedisAlertSink()
