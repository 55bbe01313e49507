"""
Error taxonomy for chunked uploads.

Every error raised by the upload engine or a storage backend is a
ChunkedUploadError carrying a stable ErrorCode, the operation that failed
and the path or upload id it failed on.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Stable error codes."""
    NOT_FOUND = "UPLOAD_NOT_FOUND"
    VALIDATION = "VALIDATION"
    INVALID_PATH = "INVALID_PATH"
    BACKEND_IO = "BACKEND_IO"
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    NOT_SUPPORTED = "NOT_SUPPORTED"
    ASSEMBLY_FAILURE = "ASSEMBLY_FAILURE"
    CLEANUP_FAILURE = "CLEANUP_FAILURE"


_HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION: 400,
    ErrorCode.INVALID_PATH: 400,
    ErrorCode.BACKEND_IO: 502,
    ErrorCode.OBJECT_NOT_FOUND: 404,
    ErrorCode.NOT_SUPPORTED: 501,
    ErrorCode.ASSEMBLY_FAILURE: 500,
    ErrorCode.CLEANUP_FAILURE: 500,
}


class ChunkedUploadError(Exception):
    """Base error for the upload engine."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        op: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.op = op
        self.path = path
        self.details = details or {}
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = ""
        if self.op:
            prefix += f"{self.op} "
        if self.path:
            prefix += f"{self.path}: "
        return f"{prefix}[{self.code.value}] {self.message}"

    @property
    def retryable(self) -> bool:
        """Whether retrying the same call may succeed."""
        return self.code == ErrorCode.BACKEND_IO

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "code": self.code.value,
            "message": self.message,
            "op": self.op,
            "path": self.path,
            "retryable": self.retryable,
            "details": self.details,
        }


class UploadNotFoundError(ChunkedUploadError):
    """Unknown upload id, or the session was already completed or aborted."""

    def __init__(self, upload_id: str, op: Optional[str] = None):
        super().__init__(ErrorCode.NOT_FOUND, f"upload not found: {upload_id}",
                         op=op, path=upload_id)
        self.upload_id = upload_id


class ValidationError(ChunkedUploadError):
    """Malformed input, such as a bad part number or no staged parts."""

    def __init__(self, message: str, op: Optional[str] = None,
                 path: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.VALIDATION, message, op=op, path=path, details=details)


class InvalidPathError(ChunkedUploadError):
    """Target path is empty, escapes the storage root or is reserved."""

    def __init__(self, path: str, reason: str, op: Optional[str] = None):
        super().__init__(ErrorCode.INVALID_PATH, reason, op=op, path=path)


class BackendIOError(ChunkedUploadError):
    """A storage operation failed."""

    def __init__(self, op: str, path: str, cause: Optional[BaseException] = None,
                 message: Optional[str] = None, code: ErrorCode = ErrorCode.BACKEND_IO):
        if message is None:
            message = str(cause) if cause is not None else ""
        super().__init__(code, message or "storage operation failed", op=op, path=path)
        self.cause = cause


class ObjectNotFoundError(BackendIOError):
    """The storage backend has no object under the given key."""

    def __init__(self, op: str, path: str, cause: Optional[BaseException] = None):
        super().__init__(op, path, cause, message="object not found",
                         code=ErrorCode.OBJECT_NOT_FOUND)


class NotSupportedError(ChunkedUploadError):
    """The backend does not implement the requested primitive."""

    def __init__(self, op: str, backend: str):
        super().__init__(ErrorCode.NOT_SUPPORTED,
                         f"{op} is not supported by the {backend} backend", op=op)


class AssemblyFailureError(ChunkedUploadError):
    """Reconstructing the target object failed; the session is gone."""

    def __init__(self, upload_id: str, target_path: str, message: str):
        super().__init__(ErrorCode.ASSEMBLY_FAILURE, message, op="complete-upload",
                         path=target_path, details={"upload_id": upload_id})
        self.upload_id = upload_id


class CleanupFailureError(ChunkedUploadError):
    """A best-effort delete failed. Logged and reported, never raised."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(ErrorCode.CLEANUP_FAILURE, str(cause) or type(cause).__name__,
                         op="cleanup", path=path)
        self.cause = cause
