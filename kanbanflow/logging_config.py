"""
Centralized logging configuration for the kanbanflow package.

Format: LEVEL: timestamp : module.function.lineno : log-line
Example: INFO: 2024-02-17 13:01:23 : kanbanflow.services.tasks.complete_task.88 : Task task_ab12 completed

Usage:
    from kanbanflow.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class KanbanflowFormatter(logging.Formatter):
    """
    Custom formatter producing:
    LEVEL: timestamp : module.function.lineno : message

    The filename is appended to the location only when the logger name
    does not already end with it (external libraries log under package names).
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        module = record.name
        filename = record.filename
        if filename.endswith(".py"):
            filename = filename[:-3]

        if module.endswith(f".{filename}") or module == filename:
            location = f"{module}.{record.funcName}.{record.lineno}"
        else:
            location = f"{module}.{filename}.{record.funcName}.{record.lineno}"

        line = f"{record.levelname}: {timestamp} : {location} : {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: Optional[int] = None, stream: Optional[object] = None) -> None:
    """
    Configure root logging for the whole service.

    Call this once at application startup (the FastAPI lifespan does).

    Args:
        level: Logging level (default: from LOG_LEVEL env var, fallback INFO)
        stream: Output stream (default: sys.stdout)
    """
    if level is None:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        level = getattr(logging, env_level, logging.INFO)
    if stream is None:
        stream = sys.stdout

    handler = logging.StreamHandler(stream)
    handler.setFormatter(KanbanflowFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    app_logger = logging.getLogger("kanbanflow")
    app_logger.setLevel(level)
    app_logger.propagate = True

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Typically __name__ from the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
