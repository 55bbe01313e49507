"""
Core interfaces defining the contracts between the upload engine and its
storage backends.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .storage import IStorageBackend, BackendCapabilities, MergeMode, ObjectInfo
from .upload import IChunkedUploader, IMergeStrategy

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "IStorageBackend",
    "BackendCapabilities",
    "MergeMode",
    "ObjectInfo",
    "IChunkedUploader",
    "IMergeStrategy",
]
