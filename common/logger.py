"""
Logging configuration for the recents service.
Provides structured logging with file rotation and optional JSON formatting.
"""

import logging
import logging.handlers
import json
import threading
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Dict, Any

from common.config import settings

# Fields attached by LogContext; a ContextVar keeps concurrent requests apart
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})
_factory_lock = threading.Lock()
_factory_installed = False


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, "request_id"):
            log_data["request_id"] = record.request_id
        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id
        if hasattr(record, "slot"):
            log_data["slot"] = record.slot

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging():
    """
    Configure logging for the application.

    Sets up:
    - Console logging
    - File logging with rotation (optional)
    - JSON or standard formatting
    - Log levels based on configuration
    """

    # Avoid double-initializing when uvicorn --reload spawns extra processes
    root_logger = logging.getLogger()
    if getattr(root_logger, "_recents_configured", False):
        return root_logger

    # Determine log level
    log_level_str = settings.log_level.upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    root_logger.setLevel(log_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Choose formatter
    if settings.enable_json_logging:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            settings.log_format,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    if settings.enable_file_logging:
        # Ensure log directory exists
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Set levels for third-party loggers to reduce noise
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)

    # Log startup message
    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Level: {log_level_str}")
    logger.info(f"File logging: {'Enabled' if settings.enable_file_logging else 'Disabled'}")
    if settings.enable_file_logging:
        logger.info(f"Log file: {settings.log_file}")
    logger.info(f"JSON logging: {'Enabled' if settings.enable_json_logging else 'Disabled'}")

    root_logger._recents_configured = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _install_record_factory() -> None:
    global _factory_installed
    with _factory_lock:
        if _factory_installed:
            return
        old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            for key, value in _log_context.get().items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        _factory_installed = True


class LogContext:
    """Context manager for adding extra context to log records."""

    def __init__(self, logger: logging.Logger, **kwargs):
        self.logger = logger
        self.context = kwargs
        self._token = None

    def __enter__(self):
        _install_record_factory()
        # Nested contexts add to (and override) the enclosing fields
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
