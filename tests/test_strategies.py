"""
Tests for merge strategies.
"""

import base64

import pytest

from chunked_upload.core.domain.errors import NotSupportedError, ValidationError
from chunked_upload.core.domain.upload import PartHandle, UploadSession
from chunked_upload.core.interfaces.storage import MergeMode
from chunked_upload.core.services.strategies import (
    BatchedCompositionStrategy, BlockCommitStrategy, DirectConcatenationStrategy,
    select_merge_strategy
)
from chunked_upload.infrastructure.storage.memory import MemoryStorageBackend


def make_session(strategy, upload_id: str = "u1", target: str = "out/file.bin") -> UploadSession:
    return UploadSession(upload_id, target, strategy.namespace_for(upload_id, target))


class TestSelectMergeStrategy:
    """Test strategy selection by backend capability."""

    def test_concatenate(self) -> None:
        strategy = select_merge_strategy(MemoryStorageBackend(MergeMode.CONCATENATE))
        assert isinstance(strategy, DirectConcatenationStrategy)
        assert strategy.fan_in is None

    def test_compose_uses_backend_fan_in(self) -> None:
        strategy = select_merge_strategy(MemoryStorageBackend(MergeMode.COMPOSE, fan_in=4))
        assert isinstance(strategy, BatchedCompositionStrategy)
        assert strategy.fan_in == 4

    def test_compose_default_fan_in(self) -> None:
        strategy = select_merge_strategy(MemoryStorageBackend(MergeMode.COMPOSE))
        assert strategy.fan_in == 32

    def test_compose_override_fan_in(self) -> None:
        strategy = select_merge_strategy(MemoryStorageBackend(MergeMode.COMPOSE), fan_in=2)
        assert strategy.fan_in == 2

    def test_block_commit(self) -> None:
        strategy = select_merge_strategy(MemoryStorageBackend(MergeMode.BLOCK_COMMIT))
        assert isinstance(strategy, BlockCommitStrategy)
        assert strategy.fan_in is None


class TestObjectStaging:
    """Test the staging layout shared by object-based strategies."""

    @pytest.fixture
    def backend(self) -> MemoryStorageBackend:
        return MemoryStorageBackend(MergeMode.CONCATENATE)

    async def test_parts_live_under_namespace(self, backend) -> None:
        strategy = DirectConcatenationStrategy(backend, ".uploads")
        session = make_session(strategy)

        handle = await strategy.stage_part(session, 3, b"abc")

        assert session.staging_namespace == ".uploads/u1"
        assert handle.location == ".uploads/u1/3"
        assert backend.objects[".uploads/u1/3"] == b"abc"

    async def test_list_parts_ignores_non_numeric_names(self, backend) -> None:
        strategy = DirectConcatenationStrategy(backend)
        session = make_session(strategy)
        await strategy.stage_part(session, 1, b"a")
        await strategy.stage_part(session, 10, b"b")
        await backend.put(".uploads/u1/intermediate-0-0", b"x")
        await backend.put(".uploads/u1/notes.txt", b"x")
        await backend.put(".uploads/u1/007", b"x")
        await backend.put(".uploads/u10/1", b"other upload")

        parts = await strategy.list_parts(session)

        assert sorted(p.part_number for p in parts) == [1, 10]

    async def test_overwrite_keeps_latest_payload(self, backend) -> None:
        strategy = DirectConcatenationStrategy(backend)
        session = make_session(strategy)
        await strategy.stage_part(session, 1, b"old")
        await strategy.stage_part(session, 1, b"new")

        parts = await strategy.list_parts(session)

        assert len(parts) == 1
        assert backend.objects[parts[0].location] == b"new"

    async def test_concatenation_merge_streams_in_order(self, backend) -> None:
        strategy = DirectConcatenationStrategy(backend)
        session = make_session(strategy)
        first = await strategy.stage_part(session, 1, b"hello ")
        second = await strategy.stage_part(session, 2, b"world")

        merged = await strategy.merge("out/file.bin", [first, second])

        assert merged.location == "out/file.bin"
        assert merged.size == 11
        assert backend.objects["out/file.bin"] == b"hello world"


class TestBatchedCompositionStrategy:
    """Test fan-in limited composition."""

    def test_override_capped_at_backend_fan_in(self) -> None:
        backend = MemoryStorageBackend(MergeMode.COMPOSE, fan_in=2)

        assert BatchedCompositionStrategy(backend, fan_in=4).fan_in == 2
        assert BatchedCompositionStrategy(MemoryStorageBackend(MergeMode.COMPOSE, fan_in=8), fan_in=3).fan_in == 3

    def test_fan_in_below_two_rejected(self) -> None:
        with pytest.raises(ValueError):
            BatchedCompositionStrategy(MemoryStorageBackend(MergeMode.COMPOSE), fan_in=1)

    async def test_merge_rejects_oversized_run(self) -> None:
        backend = MemoryStorageBackend(MergeMode.COMPOSE, fan_in=2)
        strategy = BatchedCompositionStrategy(backend)
        handles = [PartHandle(n, f"p{n}", 1) for n in (1, 2, 3)]

        with pytest.raises(ValidationError):
            await strategy.merge("target", handles)

        assert backend.compose_calls == []

    async def test_finalize_renames_survivor(self) -> None:
        backend = MemoryStorageBackend(MergeMode.COMPOSE, fan_in=2)
        strategy = BatchedCompositionStrategy(backend)
        session = make_session(strategy)
        part = await strategy.stage_part(session, 1, b"only")

        placed = await strategy.finalize(session, part)

        assert placed.location == "out/file.bin"
        assert backend.objects == {"out/file.bin": b"only"}

    def test_intermediate_location(self) -> None:
        strategy = BatchedCompositionStrategy(MemoryStorageBackend(MergeMode.COMPOSE))
        session = make_session(strategy)

        assert strategy.intermediate_location(session, 1, 4) == ".uploads/u1/intermediate-1-4"


class TestBlockCommitStrategy:
    """Test staged-block commit."""

    @pytest.fixture
    def backend(self) -> MemoryStorageBackend:
        return MemoryStorageBackend(MergeMode.BLOCK_COMMIT)

    def test_block_id_is_fixed_width(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)

        ids = [strategy.block_id("u1", n) for n in (1, 9, 10, 12345)]

        assert len({len(block_id) for block_id in ids}) == 1
        assert base64.b64decode(ids[0]).decode() == "u1-0000000001"

    def test_block_id_rejects_wide_part_numbers(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)

        with pytest.raises(ValidationError):
            strategy.block_id("u1", 10 ** 10)

    def test_parse_block_id(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)

        assert strategy.parse_block_id(strategy.block_id("a-b", 42)) == ("a-b", 42)
        assert strategy.parse_block_id("not base64!") is None
        assert strategy.parse_block_id(base64.b64encode(b"no-digits-here").decode()) is None

    async def test_list_parts_filters_other_uploads(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)
        mine = make_session(strategy, "u1", "blob")
        theirs = make_session(strategy, "u2", "blob")
        await strategy.stage_part(mine, 1, b"a")
        await strategy.stage_part(theirs, 1, b"b")
        await backend.stage_block("blob", "foreign", b"c")

        parts = await strategy.list_parts(mine)

        assert [(p.part_number, p.size) for p in parts] == [(1, 1)]

    def test_no_intermediates(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)

        with pytest.raises(NotSupportedError):
            strategy.intermediate_location(make_session(strategy), 0, 0)

    async def test_namespace_is_per_session(self, backend) -> None:
        strategy = BlockCommitStrategy(backend)

        assert strategy.namespace_for("u1", "blob") != strategy.namespace_for("u2", "blob")
