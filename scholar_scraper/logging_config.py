"""Logging configuration using loguru"""

import re
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import (
    LOG_COMPRESSION,
    LOG_CONSOLE_FORMAT,
    LOG_FILE_FORMAT,
    LOG_RETENTION,
    LOG_ROTATION,
)

# user:password@ in proxy URLs; ScraperAPI puts the API key in the password slot
_PROXY_CREDENTIALS = re.compile(r"(?P<prefix>[a-z][a-z0-9+.-]*://[^\s:/@]+):[^\s/@]+@", re.IGNORECASE)


def redact_credentials(message: str) -> str:
    """Mask the password part of every proxy URL in ``message``"""
    return _PROXY_CREDENTIALS.sub(r"\g<prefix>:***@", message)


def _redact_record(record) -> None:
    record["message"] = redact_credentials(record["message"])


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Configure loguru sinks for the CLI.

    Library modules only emit through ``logger``. Proxy passwords and
    ScraperAPI keys are masked before any sink sees a record.

    Args:
        verbose: Debug-level console output (retry and rotation detail)
        log_file: Optional file path; the file sink always records DEBUG
    """
    logger.remove()
    logger.configure(patcher=_redact_record)

    logger.add(
        sys.stdout,
        format=LOG_CONSOLE_FORMAT,
        level="DEBUG" if verbose else "INFO",
        colorize=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=LOG_FILE_FORMAT,
            level="DEBUG",
            rotation=LOG_ROTATION,
            retention=LOG_RETENTION,
            compression=LOG_COMPRESSION,
            enqueue=True,
        )
        logger.debug(f"Logging to file: {log_file}")
