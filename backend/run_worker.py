#!/usr/bin/env python3
"""
Entrypoint for the Headshot Studio maintenance worker.

Runs the arq worker that periodically refunds reservations left pending by
crashed API processes.
"""

import logging

from arq import run_worker

from headshot_studio.core.logging_config import configure_logging
from headshot_studio.workers.arq_tasks import WorkerSettings

configure_logging()
logger = logging.getLogger(__name__)


def main() -> None:
    logger.info("Starting Headshot Studio maintenance worker...")
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
