"""
REPCOACH Shared Utilities

Logging and response helpers.
"""

import logging
import sys
from typing import Any
from datetime import datetime, timezone


# ============================================
# Logging Configuration
# ============================================

def setup_logger(name: str = "repcoach", level: int = logging.INFO) -> logging.Logger:
    """
    Set up a configured logger with console output.

    Usage:
        logger = setup_logger(__name__)
        logger.info("Hello from REPCOACH")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    # Console handler with formatting
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def parse_log_level(level_name: str, default: int = logging.INFO) -> int:
    """Map a level name such as "debug" to its logging constant."""
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else default


# ============================================
# Response Helpers
# ============================================

def success_response(data: Any = None, message: str = "Success") -> dict:
    """Create a success response dict."""
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": get_now_iso()
    }


def get_now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat()
