"""Logging configuration for stackplane with dual output (console + files)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

MAIN_LOGGER = "stackplane"
STATUS_LOGGER = "status"


def setup_logging(
    log_dir: Path | str = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files:
    - stackplane.log: Allocation and provisioning operations
    - status.log: Unrecognized stack lifecycle codes

    Args:
        log_dir: Directory for log files
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    main_file_handler = RotatingFileHandler(
        log_dir / "stackplane.log",
        maxBytes=max_bytes,
        backupCount=0,  # Don't keep old files, just truncate
        encoding="utf-8",
    )
    main_file_handler.setLevel(log_level_num)

    status_file_handler = RotatingFileHandler(
        log_dir / "status.log",
        maxBytes=max_bytes,
        backupCount=0,
        encoding="utf-8",
    )
    status_file_handler.setLevel(log_level_num)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    main_logger = logging.getLogger(MAIN_LOGGER)
    main_logger.handlers.clear()
    main_logger.addHandler(main_file_handler)
    main_logger.propagate = True  # Also send to console via root logger

    status_logger = logging.getLogger(STATUS_LOGGER)
    status_logger.handlers.clear()
    status_logger.addHandler(status_file_handler)
    status_logger.propagate = True

    from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))
    main_file_handler.setFormatter(
        ProcessorFormatter(processor=structlog.processors.JSONRenderer())
    )
    status_file_handler.setFormatter(
        ProcessorFormatter(processor=structlog.processors.JSONRenderer())
    )

    logger = structlog.get_logger(MAIN_LOGGER)
    logger.info(
        "Logging system initialized",
        log_dir=str(log_dir.absolute()),
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
        main_log=str(log_dir / "stackplane.log"),
        status_log=str(log_dir / "status.log"),
    )


def get_logger() -> Any:
    """Get logger for allocation and provisioning (writes to stackplane.log)."""
    return structlog.get_logger(MAIN_LOGGER)


def get_status_logger() -> Any:
    """Get logger for unrecognized lifecycle codes (writes to status.log)."""
    return structlog.get_logger(STATUS_LOGGER)
