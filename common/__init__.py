from .config import settings
from .logger import (
    JSONFormatter,
    LogContext,
    get_logger,
    setup_logging,
)

__all__ = [
    "settings",
    # Logging
    "JSONFormatter",
    "LogContext",
    "get_logger",
    "setup_logging",
]
