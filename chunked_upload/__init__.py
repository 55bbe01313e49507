"""
Chunked Upload - assembly engine for large objects uploaded in parts.

Parts may be transmitted independently and out of order; the engine stages
them and reconstructs a byte-exact final object on local, in-memory or
compose-limited object storage.
"""

__version__ = "0.1.0"

# Public API exports
from .core.domain import (
    ErrorCode, ChunkedUploadError, UploadNotFoundError, ValidationError,
    InvalidPathError, BackendIOError, ObjectNotFoundError, NotSupportedError,
    AssemblyFailureError, CleanupFailureError,
    UploadState, UploadSession, PartHandle, AssemblyResult, CleanupReport
)
from .core.interfaces import IStorageBackend, IChunkedUploader, MergeMode, BackendCapabilities
from .core.services import ChunkedUploader, upload_stream, upload_file

__all__ = [
    "ErrorCode",
    "ChunkedUploadError",
    "UploadNotFoundError",
    "ValidationError",
    "InvalidPathError",
    "BackendIOError",
    "ObjectNotFoundError",
    "NotSupportedError",
    "AssemblyFailureError",
    "CleanupFailureError",
    "UploadState",
    "UploadSession",
    "PartHandle",
    "AssemblyResult",
    "CleanupReport",
    "IStorageBackend",
    "IChunkedUploader",
    "MergeMode",
    "BackendCapabilities",
    "ChunkedUploader",
    "upload_stream",
    "upload_file",
]
