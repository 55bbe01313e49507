"""
In-memory storage backend.

Keeps objects in a dict and can emulate any of the three merge
capabilities: unbounded concatenation, fan-in limited compose, or
staged blocks committed in one call. Useful for tests and for running
the service without touching disk.
"""

from typing import AsyncIterable, AsyncIterator, Dict, List, Optional, Sequence, Union

from loguru import logger

from ...core.domain.errors import BackendIOError, ObjectNotFoundError, ValidationError
from ...core.interfaces.storage import BackendCapabilities, IStorageBackend, MergeMode, ObjectInfo

DEFAULT_COMPOSE_FAN_IN = 32
READ_BLOCK_SIZE = 64 * 1024


class MemoryStorageBackend(IStorageBackend):
    """Dict-backed storage backend."""

    def __init__(
        self,
        merge_mode: Union[MergeMode, str] = MergeMode.CONCATENATE,
        fan_in: Optional[int] = None
    ) -> None:
        mode = MergeMode(merge_mode)
        if mode == MergeMode.COMPOSE:
            fan_in = fan_in or DEFAULT_COMPOSE_FAN_IN
            if fan_in < 2:
                raise ValueError(f"Compose fan-in must be at least 2, got {fan_in}")
        else:
            fan_in = None

        self._capabilities = BackendCapabilities(merge_mode=mode, fan_in=fan_in)
        self._objects: Dict[str, bytes] = {}
        # target -> uncommitted block id -> payload
        self._blocks: Dict[str, Dict[str, bytes]] = {}

        # Call counters, read by tests
        self.compose_calls: List[List[str]] = []
        self.commit_calls: List[List[str]] = []

    @property
    def name(self) -> str:
        return "memory"

    @property
    def capabilities(self) -> BackendCapabilities:
        return self._capabilities

    @property
    def objects(self) -> Dict[str, bytes]:
        """Snapshot of every stored object."""
        return dict(self._objects)

    def uncommitted_blocks(self, target: str) -> Dict[str, bytes]:
        return dict(self._blocks.get(self.normalize_key(target), {}))

    def _read(self, op: str, key: str) -> bytes:
        try:
            return self._objects[key]
        except KeyError:
            raise ObjectNotFoundError(op, key) from None

    async def put(self, key: str, data: bytes) -> ObjectInfo:
        key = self.normalize_key(key)
        self._objects[key] = bytes(data)
        return ObjectInfo(key=key, size=len(data))

    async def put_stream(self, key: str, chunks: AsyncIterable[bytes]) -> ObjectInfo:
        key = self.normalize_key(key)
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)
        # Visible only once the source is exhausted
        self._objects[key] = bytes(buffer)
        return ObjectInfo(key=key, size=len(buffer))

    async def get(self, key: str) -> AsyncIterator[bytes]:
        data = self._read("get", self.normalize_key(key))
        for offset in range(0, len(data), READ_BLOCK_SIZE):
            yield data[offset:offset + READ_BLOCK_SIZE]

    async def exists(self, key: str) -> bool:
        return self.normalize_key(key) in self._objects

    async def delete(self, key: str) -> None:
        key = self.normalize_key(key)
        if self._objects.pop(key, None) is None:
            raise ObjectNotFoundError("delete", key)

    async def list(self, prefix: str) -> List[ObjectInfo]:
        return [
            ObjectInfo(key=key, size=len(data))
            for key, data in sorted(self._objects.items())
            if key.startswith(prefix)
        ]

    async def copy_or_rename(self, src: str, dst: str) -> ObjectInfo:
        src = self.normalize_key(src)
        dst = self.normalize_key(dst)
        data = self._read("copy-or-rename", src)
        self._objects[dst] = data
        if dst != src:
            del self._objects[src]
        return ObjectInfo(key=dst, size=len(data))

    async def compose(self, target: str, sources: Sequence[str]) -> ObjectInfo:
        if self._capabilities.merge_mode != MergeMode.COMPOSE:
            return await super().compose(target, sources)

        target = self.normalize_key(target)
        fan_in = self._capabilities.fan_in or DEFAULT_COMPOSE_FAN_IN
        if not sources:
            raise ValidationError("compose needs at least one source", op="compose", path=target)
        if len(sources) > fan_in:
            raise ValidationError(
                f"compose accepts at most {fan_in} sources, got {len(sources)}",
                op="compose", path=target
            )

        keys = [self.normalize_key(source) for source in sources]
        data = b"".join(self._read("compose", key) for key in keys)
        self._objects[target] = data
        self.compose_calls.append(keys)
        return ObjectInfo(key=target, size=len(data))

    async def stage_block(self, target: str, block_id: str, data: bytes) -> ObjectInfo:
        if self._capabilities.merge_mode != MergeMode.BLOCK_COMMIT:
            return await super().stage_block(target, block_id, data)

        target = self.normalize_key(target)
        self._blocks.setdefault(target, {})[block_id] = bytes(data)
        return ObjectInfo(key=block_id, size=len(data))

    async def list_blocks(self, target: str) -> List[ObjectInfo]:
        if self._capabilities.merge_mode != MergeMode.BLOCK_COMMIT:
            return await super().list_blocks(target)

        blocks = self._blocks.get(self.normalize_key(target), {})
        return [ObjectInfo(key=block_id, size=len(data)) for block_id, data in blocks.items()]

    async def commit_block_list(self, target: str, block_ids: Sequence[str]) -> ObjectInfo:
        """
        Write target from the listed uncommitted blocks, in list order.

        Committed blocks are consumed; other uncommitted blocks of the same
        target stay staged.
        """
        if self._capabilities.merge_mode != MergeMode.BLOCK_COMMIT:
            return await super().commit_block_list(target, block_ids)

        target = self.normalize_key(target)
        staged = self._blocks.get(target, {})
        missing = [block_id for block_id in block_ids if block_id not in staged]
        if missing:
            raise BackendIOError("commit-block-list", target,
                                 message=f"block {missing[0]} is not staged")

        data = b"".join(staged[block_id] for block_id in block_ids)
        for block_id in block_ids:
            staged.pop(block_id, None)
        if not staged:
            self._blocks.pop(target, None)

        self._objects[target] = data
        self.commit_calls.append(list(block_ids))
        logger.debug(f"Committed {len(block_ids)} blocks to {target}")
        return ObjectInfo(key=target, size=len(data))

    async def discard_blocks(self, target: str, block_ids: Sequence[str]) -> None:
        if self._capabilities.merge_mode != MergeMode.BLOCK_COMMIT:
            return await super().discard_blocks(target, block_ids)

        target = self.normalize_key(target)
        staged = self._blocks.get(target, {})
        missing = [block_id for block_id in block_ids if staged.pop(block_id, None) is None]
        if not staged:
            self._blocks.pop(target, None)
        if missing:
            raise ObjectNotFoundError("discard-blocks", f"{target}#{missing[0]}")
