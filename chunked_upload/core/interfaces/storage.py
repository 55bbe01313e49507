"""
Storage backend interface consumed by the upload engine.

Backends expose single-object primitives plus whichever merge primitive
their storage supports: unbounded concatenation, fan-in limited compose,
or staged-block commit.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, List, Optional, Sequence

from ..domain.errors import InvalidPathError, NotSupportedError


class MergeMode(Enum):
    """How a backend merges several sources into one object."""
    CONCATENATE = "concatenate"
    COMPOSE = "compose"
    BLOCK_COMMIT = "block_commit"


@dataclass(frozen=True)
class BackendCapabilities:
    """Merge capability of a backend. fan_in None means unbounded."""
    merge_mode: MergeMode
    fan_in: Optional[int] = None


@dataclass
class ObjectInfo:
    """A stored object (or staged block) and its size in bytes."""
    key: str
    size: int


class IStorageBackend(ABC):
    """Interface for storage backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name used in logs and errors."""
        pass

    @property
    @abstractmethod
    def capabilities(self) -> BackendCapabilities:
        pass

    def normalize_key(self, key: str) -> str:
        """
        Normalize a caller-supplied key into a relative, slash-separated form.

        Raises:
            InvalidPathError: If the key is empty or escapes the backend root.
        """
        if not isinstance(key, str) or not key.strip():
            raise InvalidPathError(str(key), "path must be a non-empty string")
        if "\x00" in key:
            raise InvalidPathError(key, "path contains a NUL byte")

        cleaned = posixpath.normpath(key.replace("\\", "/").lstrip("/"))
        if cleaned in ("", ".") or cleaned == ".." or cleaned.startswith("../"):
            raise InvalidPathError(key, "path escapes the storage root")
        return cleaned

    @abstractmethod
    async def put(self, key: str, data: bytes) -> ObjectInfo:
        """Store data under key, replacing any existing object."""
        pass

    @abstractmethod
    async def put_stream(self, key: str, chunks: AsyncIterable[bytes]) -> ObjectInfo:
        """
        Store the concatenation of chunks under key.

        The object must only become visible once completely written.
        """
        pass

    @abstractmethod
    def get(self, key: str) -> AsyncIterator[bytes]:
        """
        Stream the object's bytes.

        Raises:
            ObjectNotFoundError: If there is no object under key.
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete one object.

        Raises:
            ObjectNotFoundError: If there is no object under key.
        """
        pass

    @abstractmethod
    async def list(self, prefix: str) -> List[ObjectInfo]:
        """List every object whose key starts with prefix."""
        pass

    @abstractmethod
    async def copy_or_rename(self, src: str, dst: str) -> ObjectInfo:
        """Move src to dst, replacing dst."""
        pass

    async def make_namespace(self, prefix: str) -> None:
        """Prepare a staging namespace. Object stores need nothing."""
        return None

    async def remove_namespace(self, prefix: str) -> None:
        """Remove an emptied staging namespace. Object stores need nothing."""
        return None

    async def compose(self, target: str, sources: Sequence[str]) -> ObjectInfo:
        """Concatenate at most fan_in source objects into target."""
        raise NotSupportedError("compose", self.name)

    async def stage_block(self, target: str, block_id: str, data: bytes) -> ObjectInfo:
        """Stage an uncommitted block for target."""
        raise NotSupportedError("stage-block", self.name)

    async def list_blocks(self, target: str) -> List[ObjectInfo]:
        """List the uncommitted blocks staged for target."""
        raise NotSupportedError("list-blocks", self.name)

    async def commit_block_list(self, target: str, block_ids: Sequence[str]) -> ObjectInfo:
        """Write target as the ordered concatenation of staged blocks."""
        raise NotSupportedError("commit-block-list", self.name)

    async def discard_blocks(self, target: str, block_ids: Sequence[str]) -> None:
        """Drop uncommitted blocks."""
        raise NotSupportedError("discard-blocks", self.name)
