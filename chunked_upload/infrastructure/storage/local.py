"""
Local filesystem storage backend.

Objects are files under a root directory. Keys are slash-separated paths
relative to that root; every write goes to a temporary sibling first and
is moved into place once complete.
"""

import asyncio
import os
import secrets
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List

import aiofiles
import aiofiles.os
from loguru import logger

from ...core.domain.errors import BackendIOError, InvalidPathError, ObjectNotFoundError
from ...core.interfaces.storage import BackendCapabilities, IStorageBackend, MergeMode, ObjectInfo

READ_BLOCK_SIZE = 1024 * 1024
TEMP_SUFFIX = ".tmp"


def _io_error(op: str, key: str, error: OSError) -> BackendIOError:
    if isinstance(error, FileNotFoundError):
        return ObjectNotFoundError(op, key, error)
    return BackendIOError(op, key, error)


def _is_temp_name(name: str) -> bool:
    return name.startswith(".") and name.endswith(TEMP_SUFFIX)


class LocalStorageBackend(IStorageBackend):
    """Filesystem backend merging parts by streaming concatenation."""

    def __init__(self, root_directory: str) -> None:
        self._root = Path(root_directory).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._capabilities = BackendCapabilities(merge_mode=MergeMode.CONCATENATE)

    @property
    def name(self) -> str:
        return "local"

    @property
    def capabilities(self) -> BackendCapabilities:
        return self._capabilities

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, key: str) -> Path:
        """Map a key to a path, refusing anything outside the root."""
        normalized = self.normalize_key(key)
        path = (self._root / normalized).resolve()
        if path != self._root and self._root not in path.parents:
            raise InvalidPathError(key, "path escapes the storage root")
        return path

    def _key_for(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    async def put(self, key: str, data: bytes) -> ObjectInfo:
        async def single() -> AsyncIterator[bytes]:
            yield data

        return await self._write_atomic("put", key, single())

    async def put_stream(self, key: str, chunks: AsyncIterable[bytes]) -> ObjectInfo:
        return await self._write_atomic("put-stream", key, chunks)

    async def _write_atomic(self, op: str, key: str, chunks: AsyncIterable[bytes]) -> ObjectInfo:
        path = self._resolve(key)
        temp_path = path.with_name(f".{path.name}.{secrets.token_hex(8)}{TEMP_SUFFIX}")
        size = 0

        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    size += len(chunk)
            await aiofiles.os.replace(temp_path, path)
        except BaseException as e:
            # Errors raised by the chunk source propagate unchanged
            await self._discard_temp(temp_path)
            if isinstance(e, OSError):
                raise BackendIOError(op, self._key_for(path), e) from e
            raise

        return ObjectInfo(key=self._key_for(path), size=size)

    async def _discard_temp(self, temp_path: Path) -> None:
        try:
            await aiofiles.os.remove(temp_path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {temp_path}: {e}")

    async def get(self, key: str) -> AsyncIterator[bytes]:
        path = self._resolve(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    block = await f.read(READ_BLOCK_SIZE)
                    if not block:
                        break
                    yield block
        except OSError as e:
            raise _io_error("get", self._key_for(path), e) from e

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.isfile(self._resolve(key))

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            raise _io_error("delete", self._key_for(path), e) from e

    async def list(self, prefix: str) -> List[ObjectInfo]:
        # Walk only the deepest directory the prefix names
        directory = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        base = self._resolve(directory) if directory else self._root
        try:
            return await asyncio.to_thread(self._scan, base, prefix)
        except OSError as e:
            raise _io_error("list", prefix, e) from e

    def _scan(self, base: Path, prefix: str) -> List[ObjectInfo]:
        if not base.is_dir():
            return []

        found = []
        for dirpath, _dirnames, filenames in os.walk(base):
            for filename in filenames:
                if _is_temp_name(filename):
                    continue
                path = Path(dirpath) / filename
                key = self._key_for(path)
                if key.startswith(prefix):
                    found.append(ObjectInfo(key=key, size=path.stat().st_size))
        return sorted(found, key=lambda info: info.key)

    async def copy_or_rename(self, src: str, dst: str) -> ObjectInfo:
        src_path = self._resolve(src)
        dst_path = self._resolve(dst)
        try:
            await aiofiles.os.makedirs(dst_path.parent, exist_ok=True)
            await aiofiles.os.replace(src_path, dst_path)
            size = (await aiofiles.os.stat(dst_path)).st_size
        except OSError as e:
            raise _io_error("copy-or-rename", self._key_for(src_path), e) from e
        return ObjectInfo(key=self._key_for(dst_path), size=size)

    async def make_namespace(self, prefix: str) -> None:
        path = self._resolve(prefix)
        try:
            await aiofiles.os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise BackendIOError("make-namespace", self._key_for(path), e) from e

    async def remove_namespace(self, prefix: str) -> None:
        """Remove the namespace directory; it must already be empty."""
        path = self._resolve(prefix)
        try:
            await aiofiles.os.rmdir(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise BackendIOError("remove-namespace", self._key_for(path), e) from e
