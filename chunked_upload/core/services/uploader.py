"""
Chunked uploader service.

Exposes InitiateUpload, UploadPart, CompleteUpload and AbortUpload for
one storage backend. The uploader owns its session registry; nothing
is shared between uploader instances.
"""

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger

from ..domain.errors import (
    AssemblyFailureError, ChunkedUploadError, InvalidPathError, UploadNotFoundError,
    ValidationError
)
from ..domain.upload import AssemblyResult, CleanupReport, PartHandle, UploadSession, UploadState
from ..interfaces.storage import IStorageBackend
from ..interfaces.upload import IChunkedUploader, IMergeStrategy
from .assembler import Assembler
from .cleanup import CleanupManager
from .registry import UploadSessionRegistry
from .stager import PartStager
from .strategies import DEFAULT_STAGING_PREFIX, select_merge_strategy


class ChunkedUploader(IChunkedUploader):
    """
    Chunked upload service implementation.

    Wires the session registry, part stager, assembler and cleanup
    manager around one backend and its merge strategy.
    """

    def __init__(
        self,
        backend: IStorageBackend,
        strategy: Optional[IMergeStrategy] = None,
        registry: Optional[UploadSessionRegistry] = None,
        staging_prefix: str = DEFAULT_STAGING_PREFIX,
        fan_in: Optional[int] = None,
        max_part_number: Optional[int] = None
    ):
        """
        Initialize the uploader.

        Args:
            backend: Storage backend holding staged parts and targets
            strategy: Merge strategy, chosen from backend capabilities if omitted
            registry: Session registry, a fresh one if omitted
            staging_prefix: Reserved key prefix for staging namespaces
            fan_in: Override of the backend's compose fan-in
            max_part_number: Optional upper bound on part numbers
        """
        self._backend = backend
        self._staging_prefix = staging_prefix.strip("/") or DEFAULT_STAGING_PREFIX
        self._strategy = strategy or select_merge_strategy(backend, self._staging_prefix, fan_in)
        self._registry = registry if registry is not None else UploadSessionRegistry()
        self._cleanup = CleanupManager(self._strategy)
        self._stager = PartStager(self._registry, self._strategy, max_part_number)
        self._assembler = Assembler(self._strategy, self._cleanup)
        self._running = False

        # Statistics
        self._stats = {
            "total_uploads": 0,
            "completed_uploads": 0,
            "failed_uploads": 0,
            "aborted_uploads": 0,
            "parts_staged": 0,
            "total_bytes_assembled": 0,
        }

    @property
    def name(self) -> str:
        return "ChunkedUploader"

    @property
    def backend(self) -> IStorageBackend:
        return self._backend

    @property
    def strategy(self) -> IMergeStrategy:
        return self._strategy

    @property
    def registry(self) -> UploadSessionRegistry:
        return self._registry

    async def start(self) -> None:
        """Start the uploader."""
        if self._running:
            return
        self._running = True
        logger.info(
            f"Chunked uploader started on {self._backend.name} backend "
            f"(strategy={self._strategy.name}, fan_in={self._strategy.fan_in})"
        )

    async def stop(self) -> None:
        """Stop the uploader, aborting every session still open."""
        if not self._running:
            return
        self._running = False

        for session in self._registry.list():
            try:
                await self.abort_upload(session.upload_id)
            except UploadNotFoundError:
                # Finalized concurrently
                continue

        logger.info("Chunked uploader stopped")

    async def check_health(self) -> Dict[str, Any]:
        return {
            "healthy": self._running,
            "status": "running" if self._running else "stopped",
            "details": {
                "backend": self._backend.name,
                "strategy": self._strategy.name,
                "fan_in": self._strategy.fan_in,
                "open_uploads": len(self._registry),
                "statistics": dict(self._stats),
            }
        }

    async def initiate_upload(self, target_path: str) -> str:
        """Create an open session and its staging namespace."""
        target = self._validate_target(target_path)

        upload_id = await self._registry.generate_id()
        session = UploadSession(
            upload_id=upload_id,
            target_path=target,
            staging_namespace=self._strategy.namespace_for(upload_id, target),
        )

        await self._strategy.create_namespace(session)
        await self._registry.insert(session)
        self._stats["total_uploads"] += 1

        logger.info(f"Initiated upload {upload_id} for {target}")
        return upload_id

    async def upload_part(self, upload_id: str, part_number: int, data: bytes) -> PartHandle:
        handle = await self._stager.upload_part(upload_id, part_number, data)
        self._stats["parts_staged"] += 1
        return handle

    async def complete_upload(self, upload_id: str) -> AssemblyResult:
        """
        Assemble the staged parts of a session into its target.

        The session leaves the registry before any work starts, so the id
        cannot be completed or aborted twice, whatever the outcome.
        """
        session = await self._registry.pop(upload_id, op="complete-upload")
        session.transition(UploadState.COMPLETING)
        parts: Optional[List[PartHandle]] = None

        try:
            parts = await self._strategy.list_parts(session)
            if not parts:
                raise ValidationError("no parts uploaded", op="complete-upload", path=upload_id)
            result = await self._assembler.assemble(session, parts)

        except asyncio.CancelledError:
            logger.warning(f"Completion of upload {upload_id} was cancelled, cleaning up")
            await self._fail(session, parts, shielded=True)
            raise

        except Exception as e:
            if parts is not None and not parts:
                logger.warning(f"Upload {upload_id} has nothing to assemble")
                await self._fail(session, parts)
                raise

            logger.error(f"Assembly of upload {upload_id} into {session.target_path} failed: {e}")
            await self._fail(session, parts)
            if isinstance(e, ChunkedUploadError):
                message = f"assembly failed: {e}"
            else:
                message = f"assembly failed: {type(e).__name__}: {e}"
            raise AssemblyFailureError(upload_id, session.target_path, message) from e

        session.transition(UploadState.COMPLETED)
        self._stats["completed_uploads"] += 1
        self._stats["total_bytes_assembled"] += result.size

        await self._cleanup.cleanup(session, parts)
        logger.info(f"Completed upload {upload_id} -> {session.target_path}")
        return result

    async def abort_upload(self, upload_id: str) -> CleanupReport:
        """Discard a session; cleanup failures are logged, never raised."""
        session = await self._registry.pop(upload_id, op="abort-upload")
        session.transition(UploadState.ABORTED)
        self._stats["aborted_uploads"] += 1

        report = await self._cleanup.cleanup(session)
        logger.info(f"Aborted upload {upload_id} ({report.removed} objects removed)")
        return report

    def get_upload_info(self, upload_id: str) -> Optional[UploadSession]:
        """Get an open session, None once it is finalized."""
        try:
            return self._registry.get(upload_id)
        except UploadNotFoundError:
            return None

    def list_uploads(self) -> List[UploadSession]:
        return self._registry.list()

    def get_statistics(self) -> Dict[str, Any]:
        open_sessions = self._registry.list()
        return {
            **self._stats,
            "open_uploads": len(open_sessions),
            "bytes_staged_open": sum(session.bytes_staged for session in open_sessions),
        }

    def _validate_target(self, target_path: str) -> str:
        try:
            target = self._backend.normalize_key(target_path)
        except InvalidPathError as e:
            raise InvalidPathError(str(target_path), e.message, op="initiate-upload") from None

        if target == self._staging_prefix or target.startswith(self._staging_prefix + "/"):
            raise InvalidPathError(
                target_path, "path is inside the reserved staging area", op="initiate-upload"
            )
        return target

    async def _fail(
        self,
        session: UploadSession,
        parts: Optional[List[PartHandle]],
        shielded: bool = False
    ) -> None:
        session.transition(UploadState.ABORTED)
        self._stats["failed_uploads"] += 1

        if shielded:
            await asyncio.shield(self._cleanup.cleanup(session, parts))
        else:
            await self._cleanup.cleanup(session, parts)
