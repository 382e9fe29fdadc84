"""
Logging Configuration for the Vela template compiler.

Provides centralized handler setup for the ``vela_compiler`` logger tree.
Modules log through ``logging.getLogger(__name__)``; nothing is emitted
until ``configure_logging`` attaches handlers (or the embedding application
configures the root logger itself).
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "vela_compiler"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler(level: int) -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _create_file_handler(log_path: Path, level: int) -> logging.FileHandler:
    """
    Create a file handler for the specified log file.

    Args:
        log_path: Path of the log file; parent directories are created

    Returns:
        Configured FileHandler
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        from .config import get_config
        level = get_config().log_level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
    return level


def configure_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Attach handlers to the ``vela_compiler`` logger.

    Calling this again replaces the handlers it installed previously, so it
    is safe to call from CLI entry points and tests.

    Args:
        level: Level name or number (defaults to the configured log level)
        log_file: Optional log file; falls back to VELA_COMPILER_DEBUG_LOG

    Returns:
        The configured package logger
    """
    resolved = _resolve_level(level)
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    logger.setLevel(resolved)
    logger.propagate = False
    logger.addHandler(_create_stderr_handler(resolved))

    log_file = log_file or os.getenv("VELA_COMPILER_DEBUG_LOG")
    if log_file:
        logger.addHandler(_create_file_handler(Path(log_file), resolved))

    return logger

