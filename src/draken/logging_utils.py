"""Configure the loguru sink used by the server and CLI."""

from __future__ import annotations

import sys

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single stderr sink at ``level``."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def preview(text: str, limit: int = 80) -> str:
    """Single-line preview of ``text`` for log messages."""
    flat = " ".join(text.split())
    return (flat[:limit] + "…") if len(flat) > limit else flat
