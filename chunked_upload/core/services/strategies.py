"""
Merge strategies.

Each strategy owns a staging layout and one primitive merge call. The
ordering, batching and iteration over rounds live in the Assembler and
are shared by all of them.
"""

import base64
import binascii
import re
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from loguru import logger

from ..domain.errors import NotSupportedError, ValidationError
from ..domain.upload import PartHandle, UploadSession
from ..interfaces.storage import IStorageBackend, MergeMode
from ..interfaces.upload import IMergeStrategy

DEFAULT_STAGING_PREFIX = ".uploads"
DEFAULT_COMPOSE_FAN_IN = 32
BLOCK_ID_WIDTH = 10

_PART_NAME = re.compile(r"^[1-9][0-9]*$")


class ObjectMergeStrategy(IMergeStrategy):
    """
    Base for strategies that stage parts as ordinary objects.

    Parts live at ``<staging_prefix>/<upload_id>/<part_number>``.
    """

    def __init__(self, backend: IStorageBackend, staging_prefix: str = DEFAULT_STAGING_PREFIX):
        self._backend = backend
        self._staging_prefix = staging_prefix.strip("/") or DEFAULT_STAGING_PREFIX

    @property
    def staging_prefix(self) -> str:
        return self._staging_prefix

    def namespace_for(self, upload_id: str, target_path: str) -> str:
        return f"{self._staging_prefix}/{upload_id}"

    def part_location(self, session: UploadSession, part_number: int) -> str:
        return f"{session.staging_namespace}/{part_number}"

    def intermediate_location(self, session: UploadSession, round_index: int, run_index: int) -> str:
        return f"{session.staging_namespace}/intermediate-{round_index}-{run_index}"

    async def create_namespace(self, session: UploadSession) -> None:
        await self._backend.make_namespace(session.staging_namespace)

    async def stage_part(self, session: UploadSession, part_number: int, data: bytes) -> PartHandle:
        location = self.part_location(session, part_number)
        info = await self._backend.put(location, data)
        return PartHandle(part_number=part_number, location=location, size=info.size)

    async def list_parts(self, session: UploadSession) -> List[PartHandle]:
        prefix = session.staging_namespace + "/"
        parts = []
        for info in await self._backend.list(prefix):
            name = info.key[len(prefix):]
            # Intermediates and foreign files are not parts
            if not _PART_NAME.match(name):
                continue
            parts.append(PartHandle(part_number=int(name), location=info.key, size=info.size))
        return parts

    async def finalize(self, session: UploadSession, survivor: PartHandle) -> PartHandle:
        info = await self._backend.copy_or_rename(survivor.location, session.target_path)
        return PartHandle(part_number=survivor.part_number, location=info.key, size=info.size)

    async def discard(self, session: UploadSession, handle: PartHandle) -> None:
        await self._backend.delete(handle.location)

    async def release_namespace(self, session: UploadSession) -> None:
        await self._backend.remove_namespace(session.staging_namespace)


class DirectConcatenationStrategy(ObjectMergeStrategy):
    """Streams every part, in order, straight into the target."""

    @property
    def name(self) -> str:
        return "concatenate"

    @property
    def fan_in(self) -> Optional[int]:
        return None

    async def merge(self, destination: str, sources: Sequence[PartHandle]) -> PartHandle:
        async def chunks() -> AsyncIterator[bytes]:
            for source in sources:
                async for chunk in self._backend.get(source.location):
                    yield chunk

        info = await self._backend.put_stream(destination, chunks())
        return PartHandle(part_number=sources[0].part_number, location=info.key, size=info.size)

    async def finalize(self, session: UploadSession, survivor: PartHandle) -> PartHandle:
        return await self.merge(session.target_path, [survivor])


class BatchedCompositionStrategy(ObjectMergeStrategy):
    """Composes contiguous runs of at most fan_in objects per call."""

    def __init__(
        self,
        backend: IStorageBackend,
        staging_prefix: str = DEFAULT_STAGING_PREFIX,
        fan_in: Optional[int] = None
    ):
        super().__init__(backend, staging_prefix)
        limit = backend.capabilities.fan_in
        self._fan_in = fan_in or limit or DEFAULT_COMPOSE_FAN_IN
        # An override may narrow the backend limit, never widen it
        if limit is not None and self._fan_in > limit:
            logger.warning(f"Compose fan-in {self._fan_in} exceeds backend limit {limit}, using {limit}")
            self._fan_in = limit
        if self._fan_in < 2:
            raise ValueError(f"Compose fan-in must be at least 2, got {self._fan_in}")

    @property
    def name(self) -> str:
        return "compose"

    @property
    def fan_in(self) -> Optional[int]:
        return self._fan_in

    async def merge(self, destination: str, sources: Sequence[PartHandle]) -> PartHandle:
        if len(sources) > self._fan_in:
            raise ValidationError(
                f"compose accepts at most {self._fan_in} sources, got {len(sources)}",
                op="compose", path=destination
            )
        info = await self._backend.compose(destination, [source.location for source in sources])
        return PartHandle(part_number=sources[0].part_number, location=info.key, size=info.size)


class BlockCommitStrategy(IMergeStrategy):
    """
    Stages parts as uncommitted blocks of the target and commits them once.

    Block ids are ``base64("<upload_id>-<part_number>")`` with the part
    number zero-padded to a fixed width, so every id of a blob has the same
    length. Order is recovered from the decoded part number, never from
    the encoded string.
    """

    def __init__(self, backend: IStorageBackend, block_id_width: int = BLOCK_ID_WIDTH):
        self._backend = backend
        self._width = block_id_width

    @property
    def name(self) -> str:
        return "block_commit"

    @property
    def fan_in(self) -> Optional[int]:
        return None

    def block_id(self, upload_id: str, part_number: int) -> str:
        digits = str(part_number)
        if len(digits) > self._width:
            raise ValidationError(
                f"part number {part_number} exceeds {self._width} digits",
                op="upload-part", path=upload_id
            )
        raw = f"{upload_id}-{digits.zfill(self._width)}"
        return base64.b64encode(raw.encode("ascii")).decode("ascii")

    @staticmethod
    def parse_block_id(block_id: str) -> Optional[Tuple[str, int]]:
        """Decode a block id into (upload_id, part_number), None if foreign."""
        try:
            raw = base64.b64decode(block_id, validate=True).decode("ascii")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None
        upload_id, sep, digits = raw.rpartition("-")
        if not sep or not digits.isdigit():
            return None
        return upload_id, int(digits)

    def namespace_for(self, upload_id: str, target_path: str) -> str:
        return f"{target_path}#blocks/{upload_id}"

    async def create_namespace(self, session: UploadSession) -> None:
        # Blocks are staged against the target blob itself
        return None

    async def stage_part(self, session: UploadSession, part_number: int, data: bytes) -> PartHandle:
        block_id = self.block_id(session.upload_id, part_number)
        info = await self._backend.stage_block(session.target_path, block_id, data)
        return PartHandle(part_number=part_number, location=block_id, size=info.size)

    async def list_parts(self, session: UploadSession) -> List[PartHandle]:
        parts = []
        for info in await self._backend.list_blocks(session.target_path):
            parsed = self.parse_block_id(info.key)
            if parsed is None:
                logger.debug(f"Ignoring foreign block {info.key} on {session.target_path}")
                continue
            upload_id, part_number = parsed
            if upload_id != session.upload_id or part_number < 1:
                continue
            parts.append(PartHandle(part_number=part_number, location=info.key, size=info.size))
        return parts

    def intermediate_location(self, session: UploadSession, round_index: int, run_index: int) -> str:
        raise NotSupportedError("intermediate-object", self._backend.name)

    async def merge(self, destination: str, sources: Sequence[PartHandle]) -> PartHandle:
        info = await self._backend.commit_block_list(destination, [source.location for source in sources])
        return PartHandle(part_number=sources[0].part_number, location=info.key, size=info.size)

    async def finalize(self, session: UploadSession, survivor: PartHandle) -> PartHandle:
        return await self.merge(session.target_path, [survivor])

    async def discard(self, session: UploadSession, handle: PartHandle) -> None:
        await self._backend.discard_blocks(session.target_path, [handle.location])

    async def release_namespace(self, session: UploadSession) -> None:
        return None


def select_merge_strategy(
    backend: IStorageBackend,
    staging_prefix: str = DEFAULT_STAGING_PREFIX,
    fan_in: Optional[int] = None
) -> IMergeStrategy:
    """Pick the strategy matching the backend's merge capability."""
    mode = backend.capabilities.merge_mode

    if mode == MergeMode.BLOCK_COMMIT:
        return BlockCommitStrategy(backend)
    if mode == MergeMode.COMPOSE:
        return BatchedCompositionStrategy(backend, staging_prefix, fan_in)
    return DirectConcatenationStrategy(backend, staging_prefix)
