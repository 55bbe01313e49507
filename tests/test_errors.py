"""
Tests for the error taxonomy.
"""

import pytest

from chunked_upload.core.domain.errors import (
    AssemblyFailureError, BackendIOError, ChunkedUploadError, CleanupFailureError, ErrorCode,
    InvalidPathError, NotSupportedError, ObjectNotFoundError, UploadNotFoundError, ValidationError
)


class TestChunkedUploadErrors:
    """Test error codes, formatting and HTTP mapping."""

    def test_format_includes_op_and_path(self) -> None:
        error = BackendIOError("put", ".uploads/u1/1", OSError("disk full"))

        assert str(error) == "put .uploads/u1/1: [BACKEND_IO] disk full"
        assert isinstance(error.cause, OSError)

    def test_backend_error_without_cause(self) -> None:
        assert BackendIOError("put", "k").message == "storage operation failed"

    @pytest.mark.parametrize("error,status,retryable", [
        (UploadNotFoundError("u1"), 404, False),
        (ValidationError("bad"), 400, False),
        (InvalidPathError("../x", "escapes"), 400, False),
        (BackendIOError("put", "k"), 502, True),
        (ObjectNotFoundError("get", "k"), 404, False),
        (NotSupportedError("compose", "local"), 501, False),
        (AssemblyFailureError("u1", "t", "failed"), 500, False),
        (CleanupFailureError("k", OSError("x")), 500, False),
    ])
    def test_status_and_retryable(self, error: ChunkedUploadError, status: int, retryable: bool) -> None:
        assert error.http_status == status
        assert error.retryable is retryable

    def test_object_not_found_is_backend_error(self) -> None:
        error = ObjectNotFoundError("delete", "k")

        assert isinstance(error, BackendIOError)
        assert error.code == ErrorCode.OBJECT_NOT_FOUND

    def test_to_dict(self) -> None:
        error = AssemblyFailureError("u1", "video.mp4", "assembly failed: boom")

        assert error.to_dict() == {
            "code": "ASSEMBLY_FAILURE",
            "message": "assembly failed: boom",
            "op": "complete-upload",
            "path": "video.mp4",
            "retryable": False,
            "details": {"upload_id": "u1"},
        }
