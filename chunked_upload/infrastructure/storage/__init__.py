"""
Storage backend adapters.
"""

from .local import LocalStorageBackend
from .memory import MemoryStorageBackend
from .factory import create_backend

__all__ = [
    "LocalStorageBackend",
    "MemoryStorageBackend",
    "create_backend",
]
