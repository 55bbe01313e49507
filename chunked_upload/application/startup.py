"""
Application startup and configuration logic.

This module builds the application components from configuration and
manages their startup and shutdown sequence.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..core.interfaces.lifecycle import IComponent
from ..core.interfaces.storage import IStorageBackend
from ..core.services.uploader import ChunkedUploader
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.logging.setup import LoggingManager
from ..infrastructure.storage.factory import create_backend


def create_uploader(config: ApplicationConfig, backend: Optional[IStorageBackend] = None) -> ChunkedUploader:
    """
    Build a chunked uploader from configuration.

    Args:
        config: Application configuration
        backend: Storage backend to use instead of the configured one
    """
    if backend is None:
        backend = create_backend(config.storage)

    return ChunkedUploader(
        backend,
        staging_prefix=config.upload.staging_prefix,
        fan_in=config.storage.fan_in,
        max_part_number=config.upload.max_part_number,
    )


class ApplicationStartup:
    """
    Manages application startup and shutdown.

    Components start in order and stop in reverse order; a failed start
    stops whatever already started.
    """

    def __init__(self, config: ApplicationConfig, backend: Optional[IStorageBackend] = None) -> None:
        self._config = config
        self._logging_manager = LoggingManager(config.logging)
        self._uploader = create_uploader(config, backend)
        self._components: List[IComponent] = [self._logging_manager, self._uploader]
        self._started_components: List[IComponent] = []

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    @property
    def uploader(self) -> ChunkedUploader:
        return self._uploader

    @property
    def is_running(self) -> bool:
        return bool(self._started_components)

    async def start_application(self) -> None:
        """Start all components in order."""
        for component in self._components:
            try:
                await component.start()
                self._started_components.append(component)
                logger.debug(f"Started component: {component.name}")
            except Exception as e:
                logger.error(f"Failed to start component {component.name}: {e}")
                await self.stop_application()
                raise

        logger.info(f"{self._config.name} {self._config.version} started")

    async def stop_application(self) -> None:
        """Stop all started components in reverse order."""
        for component in reversed(self._started_components):
            try:
                await component.stop()
                logger.debug(f"Stopped component: {component.name}")
            except Exception as e:
                # Keep stopping the remaining components
                logger.error(f"Error stopping component {component.name}: {e}")

        self._started_components.clear()

    async def check_health(self) -> Dict[str, Any]:
        """Aggregate the health of every component."""
        components = {}
        for component in self._components:
            components[component.name] = await component.check_health()

        return {
            "healthy": all(status["healthy"] for status in components.values()),
            "components": components,
        }
