"""Logging utilities for Azure DevOps Migration Tool."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .security import sanitize_for_logging


def _redact_record(record) -> None:
    """Strip credentials from URLs before any sink sees the message."""
    record['message'] = sanitize_for_logging(record['message'])


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        log_format: Optional custom log format
    """
    # Remove default handler
    logger.remove()
    logger.configure(patcher=_redact_record, extra={'component': 'azdo-migrate'})

    # Default format if not provided
    if log_format is None:
        log_format = (
            '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
            '<level>{level: <8}</level> | '
            '<cyan>{extra[component]}</cyan> | '
            '<level>{message}</level>'
        )

    # Add console handler
    logger.add(
        sys.stderr,
        format=log_format,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    # Add file handler if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # File format (no colors)
        file_format = (
            '{time:YYYY-MM-DD HH:mm:ss} | '
            '{level: <8} | '
            '{extra[component]} | '
            '{message}'
        )

        logger.add(
            log_file,
            format=file_format,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
        )

    logger.bind(component='logging').debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.bind(component='logging').info(f'Log file: {log_file}')
