"""
Logging for svsim.

Every module logs through ``logging.getLogger(__name__)``, so all records
land under the ``svsim`` logger: gate dispatches and measurement draws at
DEBUG, register creation at INFO, backend failures at WARNING.  Nothing is
printed until an application calls :func:`setup_logging` (or configures
the ``svsim`` logger itself).
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "svsim"

# threadName tells dispatch workers (svsim-dispatch_N) apart from the caller
DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s'


def _handler(handler: logging.Handler, level: Union[int, str],
             formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Route svsim's log records to stdout and, optionally, a file.

    Calling it again replaces the handlers installed by the previous call,
    so a test or notebook can switch level or file without duplicate lines.

    Args:
        level: Threshold for the ``svsim`` logger and its handlers, as a
            number or a name such as ``"DEBUG"`` (default: INFO).
        log_file: File that also receives the records; parent directories
            are created.
        format_string: Record format (default: :data:`DEFAULT_FORMAT`).

    Returns:
        The ``svsim`` logger.
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, formatter))
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(log_file), level, formatter))

    return logger


def get_logger(name: str) -> logging.Logger:
    """``svsim.<name>`` child logger; names already under ``svsim`` are used as is."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f'{ROOT_LOGGER}.{name}')
