"""
Tests for best-effort cleanup.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chunked_upload.core.domain.errors import BackendIOError, CleanupFailureError, ObjectNotFoundError
from chunked_upload.core.domain.upload import PartHandle, UploadSession
from chunked_upload.core.interfaces.storage import MergeMode
from chunked_upload.core.services.cleanup import CleanupManager
from chunked_upload.core.services.strategies import DirectConcatenationStrategy
from chunked_upload.infrastructure.storage.memory import MemoryStorageBackend


class TestCleanupManager:
    """Test cases for CleanupManager."""

    @pytest.fixture
    def backend(self) -> MemoryStorageBackend:
        return MemoryStorageBackend(MergeMode.CONCATENATE)

    @pytest.fixture
    def strategy(self, backend) -> DirectConcatenationStrategy:
        return DirectConcatenationStrategy(backend)

    @pytest.fixture
    async def session(self, strategy) -> UploadSession:
        session = UploadSession("u1", "out.bin", strategy.namespace_for("u1", "out.bin"))
        for number in (1, 2, 3):
            await strategy.stage_part(session, number, b"data")
        return session

    async def test_cleanup_enumerates_and_removes_parts(self, backend, strategy, session) -> None:
        report = await CleanupManager(strategy).cleanup(session)

        assert report.clean
        assert report.removed == 3
        assert backend.objects == {}

    async def test_cleanup_removes_intermediates_first(self, backend, strategy, session) -> None:
        await backend.put(".uploads/u1/intermediate-0-0", b"tmp")
        session.intermediates.append(PartHandle(1, ".uploads/u1/intermediate-0-0", 3))
        strategy.discard = AsyncMock(wraps=strategy.discard)

        report = await CleanupManager(strategy).cleanup(session)

        first_call = strategy.discard.await_args_list[0]
        assert first_call.args[1].location == ".uploads/u1/intermediate-0-0"
        assert report.removed == 4
        assert session.intermediates == []

    async def test_missing_objects_are_not_failures(self, backend, strategy, session) -> None:
        parts = await strategy.list_parts(session)
        await backend.delete(parts[0].location)

        report = await CleanupManager(strategy).cleanup(session, parts)

        assert report.clean
        assert report.removed == 2

    async def test_failures_are_recorded_not_raised(self, backend, strategy, session) -> None:
        original = backend.delete

        async def failing_delete(key):
            if key.endswith("/2"):
                raise BackendIOError("delete", key, message="permission denied")
            await original(key)

        backend.delete = AsyncMock(side_effect=failing_delete)

        report = await CleanupManager(strategy).cleanup(session)

        assert report.removed == 2
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert isinstance(failure, CleanupFailureError)
        assert failure.path == ".uploads/u1/2"
        assert set(backend.objects) == {".uploads/u1/2"}

    async def test_enumeration_failure_is_recorded(self, strategy, session) -> None:
        strategy.list_parts = AsyncMock(side_effect=BackendIOError("list", ".uploads/u1/"))

        report = await CleanupManager(strategy).cleanup(session)

        assert len(report.failures) == 1
        assert report.removed == 0

    async def test_cancellation_propagates(self, strategy, session) -> None:
        strategy.discard = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await CleanupManager(strategy).cleanup(session)

    async def test_discard_intermediates_keeps_failed_ones(self, backend, strategy, session) -> None:
        ok = PartHandle(1, ".uploads/u1/intermediate-0-0", 1)
        stuck = PartHandle(3, ".uploads/u1/intermediate-0-1", 1)
        await backend.put(ok.location, b"x")
        session.intermediates.extend([ok, stuck])

        original = backend.delete

        async def failing_delete(key):
            if key == stuck.location:
                raise BackendIOError("delete", key, message="timeout")
            await original(key)

        backend.delete = AsyncMock(side_effect=failing_delete)

        report = await CleanupManager(strategy).discard_intermediates(session, [ok, stuck])

        assert report.removed == 1
        assert session.intermediates == [stuck]

    async def test_discard_intermediates_drops_already_gone(self, strategy, session) -> None:
        gone = PartHandle(1, ".uploads/u1/intermediate-0-0", 1)
        session.intermediates.append(gone)
        strategy.discard = AsyncMock(side_effect=ObjectNotFoundError("delete", gone.location))

        report = await CleanupManager(strategy).discard_intermediates(session, [gone])

        assert report.clean
        assert session.intermediates == []
