"""
Storage backend factory.
"""

from loguru import logger

from ...core.interfaces.storage import IStorageBackend, MergeMode
from ..config.models import StorageConfig
from .local import LocalStorageBackend
from .memory import MemoryStorageBackend


def create_backend(config: StorageConfig) -> IStorageBackend:
    """
    Create the storage backend described by config.

    Raises:
        ValueError: If the backend type or merge mode is unknown
    """
    backend_type = config.backend.lower()

    if backend_type == "local":
        backend: IStorageBackend = LocalStorageBackend(config.root_directory)
    elif backend_type == "memory":
        backend = MemoryStorageBackend(MergeMode(config.merge_mode), config.fan_in)
    else:
        raise ValueError(f"Unknown storage backend: {config.backend}")

    capabilities = backend.capabilities
    logger.debug(
        f"Created {backend.name} storage backend "
        f"(merge_mode={capabilities.merge_mode.value}, fan_in={capabilities.fan_in})"
    )
    return backend
