"""
Logging setup for silos.

Two loguru sinks:
- console: coloured stderr output, dropped in machine mode (SILOS_MACHINE_MODE)
- file: rotating log under SILOS_LOG_DIR, only when SILOS_FILE_LOGGING is set

Results are written to stdout by the CLI, so logs never share a stream with them.
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
DEFAULT_LOG_DIR = ".silos/logs"

_configured = False


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _add_file_sink(level: str) -> Path:
    log_dir = Path(os.getenv("SILOS_LOG_DIR", DEFAULT_LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / "silos.log"
    logger.add(
        path,
        level=level,
        rotation="10 MB",
        retention=3,
        compression="gz",
        enqueue=True,
        catch=True,
    )
    return path


def setup_logging(
    level: str = "INFO",
    suppress_console: Optional[bool] = None,
    enable_file_logging: Optional[bool] = None,
    force: bool = False,
) -> None:
    """
    Configure the global loguru logger. Later calls are no-ops unless `force`.

    Args:
        level: Minimum level for the console sink
        suppress_console: Drop the console sink. None reads SILOS_MACHINE_MODE.
        enable_file_logging: Add the file sink. None reads SILOS_FILE_LOGGING.
        force: Reconfigure even if already configured (CLI --verbose, tests)
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    logger.remove()

    if suppress_console is None:
        suppress_console = _env_flag("SILOS_MACHINE_MODE")
    if not suppress_console:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if enable_file_logging is None:
        enable_file_logging = _env_flag("SILOS_FILE_LOGGING")
    if enable_file_logging:
        path = _add_file_sink("DEBUG" if level == "DEBUG" else "INFO")
        logger.debug(f"File logging to {path}")


setup_logging()
