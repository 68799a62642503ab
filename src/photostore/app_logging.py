"""Logging initialization utilities using loguru."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def init_logging(log_dir: str | None = None, level: str = "INFO") -> None:
    """Log to stderr and, when ``log_dir`` is given, to a rotating file there."""
    logger.remove()
    # look sys.stderr up per message so a swapped stream (tests, daemons) is honoured
    logger.add(lambda message: sys.stderr.write(message), level=level, format="{level}: {name}: {message}")
    if log_dir is None:
        return
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_path / "photostore_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        enqueue=False,
        backtrace=False,
        diagnose=False,
        level=level,
    )
