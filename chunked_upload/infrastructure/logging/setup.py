"""
Logging setup and configuration utilities.

This module provides centralized logging configuration using loguru
with support for file rotation and multiple outputs.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from ..config.models import LoggingConfig
from ...core.interfaces.lifecycle import IComponent

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
LOG_FILE_NAME = "chunked_upload.log"


def setup_logging(config: LoggingConfig) -> List[int]:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration

    Returns:
        Ids of the sinks that were added
    """
    # Remove default handler
    logger.remove()
    level = config.level.upper()
    sink_ids = []

    if config.console_enabled:
        sink_ids.append(logger.add(
            sys.stderr,
            format=config.format,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False
        ))

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        sink_ids.append(logger.add(
            log_dir / LOG_FILE_NAME,
            format=FILE_FORMAT,
            level=level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            enqueue=True,
            backtrace=True,
            diagnose=False
        ))

    return sink_ids


class LoggingManager(IComponent):
    """Applies a LoggingConfig on start and reports it in health checks."""

    def __init__(self, config: LoggingConfig) -> None:
        self._config = config
        self._started = False
        self._sink_ids: List[int] = []

    @property
    def name(self) -> str:
        return "LoggingManager"

    @property
    def config(self) -> LoggingConfig:
        return self._config

    async def start(self) -> None:
        if self._started:
            return

        self._sink_ids = setup_logging(self._config)
        self._started = True
        logger.info(f"Logging started at level {self._config.level}")

    async def stop(self) -> None:
        if not self._started:
            return

        logger.info("Logging manager stopped")
        # Flush enqueued file records
        await logger.complete()
        self._started = False

    async def check_health(self) -> Dict[str, Any]:
        log_dir = Path(self._config.log_directory)

        return {
            'healthy': True,
            'status': 'running' if self._started else 'stopped',
            'details': {
                'log_level': self._config.level,
                'log_directory': str(log_dir),
                'console_enabled': self._config.console_enabled,
                'file_enabled': self._config.file_enabled,
                'max_file_size': self._config.max_file_size,
                'backup_count': self._config.backup_count,
                'sinks': len(self._sink_ids),
            }
        }
