"""
Logging configuration for the engine.

Uses loguru. Every record carries an ``operation`` field (merge, delete,
detect, ...) bound by ``operation_context`` so a merge and the file cleanup
that follows it can be read together in the log.
"""

import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from articles.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[operation]: <10}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[operation]: <10} | {name}:{function}:{line} - {message}"


def _engine_records(record) -> bool:
    return record["name"].startswith("articles")


def setup_logging(
    level: str | None = None,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> None:
    """
    Configure logging for the engine.

    The console shows every record; the optional file sink keeps only
    records emitted by the ``articles`` package, which is the audit trail
    of merges and deletions.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for the engine audit log
        rotation: Log rotation setting (e.g., "10 MB", "1 day")
        retention: Log retention setting (e.g., "1 week", "10 files")
    """
    level = level or settings.runtime.log_level
    log_file = log_file or settings.runtime.log_file

    logger.remove()
    logger.configure(extra={"operation": "-"})

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            filter=_engine_records,
            rotation=rotation,
            retention=retention,
            compression="gz",
        )

    logger.debug(f"Logging configured: level={level}")


@contextmanager
def operation_context(operation: str) -> Iterator[None]:
    """Tag every record logged inside the block with the operation name."""
    with logger.contextualize(operation=operation):
        yield


# Only configure logging if not explicitly disabled
if os.environ.get("DISABLE_LOGGING") != "1":
    setup_logging()
