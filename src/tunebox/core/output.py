"""
Logging setup using Loguru.

The daemon logs to a rotating file (and optionally stderr when run in the
foreground). The terminal interface logs to its own file only, since
blessed owns the screen.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def setup_loguru(
    log_file: Path,
    level: str = "INFO",
    rotation: str = "10 MB",
    retention: int = 5,
    console_output: bool = False,
) -> None:
    """
    Configure loguru with a rotating file sink.

    Args:
        log_file: Path to log file
        level: Minimum level for logging (DEBUG, INFO, WARNING, ERROR)
        rotation: Size at which the file is rotated
        retention: Number of rotated files to keep
        console_output: Also write to stderr
    """
    # Remove default handler
    logger.remove()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation=rotation,
        retention=retention,
        level=level,
        format=LOG_FORMAT,
        enqueue=True,  # Connection threads log concurrently
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")
