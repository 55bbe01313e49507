"""
Domain models and errors for chunked uploads.
"""

from .errors import (
    ErrorCode, ChunkedUploadError, UploadNotFoundError, ValidationError,
    InvalidPathError, BackendIOError, ObjectNotFoundError, NotSupportedError,
    AssemblyFailureError, CleanupFailureError
)
from .upload import UploadState, UploadSession, PartHandle, AssemblyResult, CleanupReport

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
]
