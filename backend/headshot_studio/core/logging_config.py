"""Process-wide logging setup shared by the API and the worker."""

import logging
import sys
from typing import Optional

from headshot_studio.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging to stdout.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is controlled by the engine, keep the driver quiet
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
