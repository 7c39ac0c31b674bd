"""Loguru sink configuration for scripts and long-running workers."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from loguru import logger

from lorekeeper.utils.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
)


def configure_logging(config: LoggingConfig | None = None, *, verbose: bool = False) -> None:
    """Replace the default Loguru sink with a console sink plus a rotating file."""
    config = config or LoggingConfig()
    level = "DEBUG" if verbose else os.getenv("LOREKEEPER_LOG_LEVEL", config.level).upper()

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation=config.rotation,
            retention=config.retention,
        )
