"""
Centralized Logging Configuration for PineUI Builder

All Python logging from the service goes to:

1. logs/builder/system.log - rotating file
2. stdout - shorter console format

Usage in any module:
    from libs.core.logging_config import setup_logging, get_logger

    # Call once at service startup
    setup_logging()

    # Get a logger for your module
    logger = get_logger(__name__)
    logger.info("My message")

Debugging:
    tail -f logs/builder/system.log
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# =============================================================================
# Configuration
# =============================================================================

LOG_DIR = Path(os.getenv("LOG_DIR", "logs/builder"))
SYSTEM_LOG_FILE = LOG_DIR / "system.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 5

DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-20s | %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

# =============================================================================
# Global State
# =============================================================================

_logging_configured = False
_file_handler: Optional[RotatingFileHandler] = None


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    service_name: str = "builder",
) -> None:
    """
    Configure unified logging for the builder service.

    Safe to call more than once; only the first call configures handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO.
        log_to_console: Whether to also log to stdout (default True)
        log_to_file: Whether to log to system.log file (default True)
        service_name: Service identifier for the startup marker
    """
    global _logging_configured, _file_handler

    if _logging_configured:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers (prevents duplicates)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # === File Handler (system.log) ===
    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            SYSTEM_LOG_FILE,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        _file_handler.setLevel(log_level)
        _file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root_logger.addHandler(_file_handler)

    # === Console Handler (stdout) ===
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
        root_logger.addHandler(console_handler)

    # === Reduce noise from chatty libraries ===
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _logging_configured = True

    logger = logging.getLogger(service_name)
    logger.info("=" * 60)
    logger.info(f"LOGGING INITIALIZED - {service_name.upper()}")
    if log_to_file:
        logger.info(f"Log file: {SYSTEM_LOG_FILE.absolute()}")
    logger.info(f"Log level: {level.upper()}")
    logger.info("=" * 60)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Usually __name__ to get the module's dotted path

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# =============================================================================
# Convenience Functions
# =============================================================================


def log_request(logger: logging.Logger, method: str, path: str, status: int, elapsed_ms: float):
    """Log one finished HTTP request with standard format."""
    logger.info(f"REQ | {method} {path} -> {status} | elapsed={elapsed_ms:.0f}ms")


def log_stream_end(logger: logging.Logger, state: str, chars: int, elapsed_s: float):
    """Log the end of a relay session with standard format."""
    logger.info(f"STREAM END | {state} | chars={chars} | elapsed={elapsed_s:.1f}s")
