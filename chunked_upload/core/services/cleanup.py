"""
Best-effort removal of staged data.

Cleanup never raises: a delete that fails is logged and recorded in the
report so that one unreachable object cannot block removal of the rest,
nor mask the error that triggered the cleanup.
"""

import asyncio
from typing import Iterable, List, Optional

from loguru import logger

from ..domain.errors import CleanupFailureError, ObjectNotFoundError
from ..domain.upload import CleanupReport, PartHandle, UploadSession
from ..interfaces.upload import IMergeStrategy


class CleanupManager:
    """Deletes staged parts, intermediates and staging namespaces."""

    def __init__(self, strategy: IMergeStrategy) -> None:
        self._strategy = strategy

    async def cleanup(
        self,
        session: UploadSession,
        parts: Optional[List[PartHandle]] = None
    ) -> CleanupReport:
        """
        Remove everything staged for a session.

        Intermediates go first, then the caller's parts, then the namespace.
        When parts is None they are enumerated from the backend.
        """
        report = CleanupReport(upload_id=session.upload_id)

        await self._discard_all(session, list(session.intermediates), report)
        session.intermediates.clear()

        if parts is None:
            try:
                parts = await self._strategy.list_parts(session)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record(report, session.staging_namespace, e)
                parts = []

        await self._discard_all(session, parts, report)

        try:
            await self._strategy.release_namespace(session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._record(report, session.staging_namespace, e)

        if report.clean:
            logger.debug(f"Cleaned up upload {session.upload_id}: {report.removed} objects removed")
        else:
            logger.warning(
                f"Cleanup of upload {session.upload_id} left {len(report.failures)} objects behind"
            )
        return report

    async def discard_intermediates(self, session: UploadSession, handles: Iterable[PartHandle]) -> CleanupReport:
        """Remove intermediates consumed by a later composition round."""
        report = CleanupReport(upload_id=session.upload_id)
        handles = list(handles)
        await self._discard_all(session, handles, report)

        # Failed deletes stay tracked for the final cleanup
        failed = {failure.path for failure in report.failures}
        session.intermediates = [
            handle for handle in session.intermediates
            if handle not in handles or handle.location in failed
        ]
        return report

    async def _discard_all(
        self,
        session: UploadSession,
        handles: Iterable[PartHandle],
        report: CleanupReport
    ) -> None:
        for handle in handles:
            try:
                await self._strategy.discard(session, handle)
                report.removed += 1
            except ObjectNotFoundError:
                # Already gone, e.g. renamed into the target
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record(report, handle.location, e)

    def _record(self, report: CleanupReport, path: str, error: BaseException) -> None:
        failure = CleanupFailureError(path, error)
        report.failures.append(failure)
        logger.warning(f"Cleanup failed for {path}: {error}")
