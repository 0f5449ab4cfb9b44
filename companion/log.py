"""Loguru configuration shared by the API and CLI entry points."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", log_file: str | None = None, fmt: str = CONSOLE_FORMAT) -> None:
    """Replace loguru's default handler with stderr (and an optional rotating file)."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=fmt)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, rotation="10 MB", retention=5, encoding="utf-8")
