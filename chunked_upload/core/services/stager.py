"""
Part staging.

Writes individual part payloads into the staging namespace of an open
session. Staging calls for different part numbers may run concurrently;
they target disjoint keys.
"""

from typing import Optional

from loguru import logger

from ..domain.errors import ValidationError
from ..domain.upload import PartHandle
from ..interfaces.upload import IMergeStrategy
from .registry import UploadSessionRegistry


class PartStager:
    """Validates and stages parts for open sessions."""

    def __init__(
        self,
        registry: UploadSessionRegistry,
        strategy: IMergeStrategy,
        max_part_number: Optional[int] = None
    ) -> None:
        self._registry = registry
        self._strategy = strategy
        self._max_part_number = max_part_number

    def validate_part_number(self, upload_id: str, part_number: int) -> None:
        """
        Raises:
            ValidationError: Unless part_number is an int in the accepted range.
        """
        if isinstance(part_number, bool) or not isinstance(part_number, int):
            raise ValidationError(
                f"part number must be an integer, got {type(part_number).__name__}",
                op="upload-part", path=upload_id
            )
        if part_number < 1:
            raise ValidationError(
                f"part number must be >= 1, got {part_number}",
                op="upload-part", path=upload_id
            )
        if self._max_part_number is not None and part_number > self._max_part_number:
            raise ValidationError(
                f"part number must be <= {self._max_part_number}, got {part_number}",
                op="upload-part", path=upload_id
            )

    async def upload_part(self, upload_id: str, part_number: int, data: bytes) -> PartHandle:
        """
        Stage one part, replacing an earlier payload with the same number.

        A failed or cancelled write leaves the session open and unchanged.
        """
        self.validate_part_number(upload_id, part_number)
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ValidationError(
                f"part data must be bytes, got {type(data).__name__}",
                op="upload-part", path=upload_id
            )

        session = self._registry.get(upload_id, op="upload-part")
        handle = await self._strategy.stage_part(session, part_number, bytes(data))
        session.record_part(handle)

        logger.debug(
            f"Staged part {part_number} of upload {upload_id} ({handle.size} bytes) at {handle.location}"
        )
        return handle
