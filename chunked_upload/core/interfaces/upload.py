"""
Upload service interfaces.

This module defines the contracts of the chunked uploader and of the
merge strategies it assembles parts with.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..domain.upload import AssemblyResult, CleanupReport, PartHandle, UploadSession
from .lifecycle import IComponent


class IMergeStrategy(ABC):
    """
    Backend-specific staging layout and primitive merge call.

    The ordering and batching of parts is shared code in the Assembler;
    a strategy only decides where parts live and how one run of sources
    becomes one object.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def fan_in(self) -> Optional[int]:
        """Maximum sources per merge call, None when unbounded."""
        pass

    @abstractmethod
    def namespace_for(self, upload_id: str, target_path: str) -> str:
        """Staging namespace owned by one session."""
        pass

    @abstractmethod
    async def create_namespace(self, session: UploadSession) -> None:
        pass

    @abstractmethod
    async def stage_part(self, session: UploadSession, part_number: int, data: bytes) -> PartHandle:
        """Write one part, replacing an earlier payload with the same number."""
        pass

    @abstractmethod
    async def list_parts(self, session: UploadSession) -> List[PartHandle]:
        """Enumerate the parts staged for a session, in any order."""
        pass

    @abstractmethod
    def intermediate_location(self, session: UploadSession, round_index: int, run_index: int) -> str:
        pass

    @abstractmethod
    async def merge(self, destination: str, sources: Sequence[PartHandle]) -> PartHandle:
        """Merge an ordered run of at most fan_in sources into destination."""
        pass

    @abstractmethod
    async def finalize(self, session: UploadSession, survivor: PartHandle) -> PartHandle:
        """Place the last surviving object at the session's target path."""
        pass

    @abstractmethod
    async def discard(self, session: UploadSession, handle: PartHandle) -> None:
        """
        Delete one staged part or intermediate.

        Raises:
            ObjectNotFoundError: If it is already gone.
        """
        pass

    @abstractmethod
    async def release_namespace(self, session: UploadSession) -> None:
        pass


class IChunkedUploader(IComponent):
    """
    Interface for the chunked upload service.

    Parts may arrive in any order; the final object is the concatenation
    of part payloads in ascending part number.
    """

    @abstractmethod
    async def initiate_upload(self, target_path: str) -> str:
        """
        Start a chunked upload.

        Args:
            target_path: Final object location

        Returns:
            Opaque upload id

        Raises:
            InvalidPathError: If target_path is not a valid object key
            BackendIOError: If the staging namespace cannot be created
        """
        pass

    @abstractmethod
    async def upload_part(self, upload_id: str, part_number: int, data: bytes) -> PartHandle:
        """
        Stage one part.

        Raises:
            UploadNotFoundError: If the session is unknown or finalized
            ValidationError: If part_number is not an integer >= 1
            BackendIOError: If the write failed; the caller may retry
        """
        pass

    @abstractmethod
    async def complete_upload(self, upload_id: str) -> AssemblyResult:
        """
        Assemble the staged parts into the target object.

        The session is finalized by the first call whatever the outcome.

        Raises:
            UploadNotFoundError: If the session is unknown or finalized
            ValidationError: If no parts were staged
            AssemblyFailureError: If reconstruction failed
        """
        pass

    @abstractmethod
    async def abort_upload(self, upload_id: str) -> CleanupReport:
        """
        Discard a session and everything staged for it.

        Raises:
            UploadNotFoundError: If the session is unknown or finalized
        """
        pass

    @abstractmethod
    def get_upload_info(self, upload_id: str) -> Optional[UploadSession]:
        pass

    @abstractmethod
    def list_uploads(self) -> List[UploadSession]:
        pass

    @abstractmethod
    def get_statistics(self) -> Dict[str, Any]:
        pass
