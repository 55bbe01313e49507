"""
Upload session registry.

The registry is the only shared mutable state of an uploader. Insertion
and removal are serialized through one lock per registry so that a
session can be finalized exactly once.
"""

import asyncio
import secrets
from typing import Dict, List, Set

from loguru import logger

from ..domain.errors import UploadNotFoundError
from ..domain.upload import UploadSession

UPLOAD_ID_BYTES = 16


class UploadSessionRegistry:
    """Maps opaque upload ids to open sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[str, UploadSession] = {}
        self._issued: Set[str] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: object) -> bool:
        return upload_id in self._sessions

    async def generate_id(self) -> str:
        """
        Generate a cryptographically random upload id.

        Ids are never reissued during the registry's lifetime, even after
        the session that held them is gone.
        """
        async with self._lock:
            while True:
                upload_id = secrets.token_hex(UPLOAD_ID_BYTES)
                if upload_id not in self._issued:
                    self._issued.add(upload_id)
                    return upload_id

    async def insert(self, session: UploadSession) -> None:
        async with self._lock:
            if session.upload_id in self._sessions:
                raise ValueError(f"Upload {session.upload_id} is already registered")
            self._issued.add(session.upload_id)
            self._sessions[session.upload_id] = session
        logger.debug(f"Registered upload session {session.upload_id}")

    def get(self, upload_id: str, op: str = "upload-part") -> UploadSession:
        """
        Look a session up without removing it.

        Raises:
            UploadNotFoundError: If no open session has this id.
        """
        session = self._sessions.get(upload_id)
        if session is None:
            raise UploadNotFoundError(upload_id, op=op)
        return session

    async def pop(self, upload_id: str, op: str = "complete-upload") -> UploadSession:
        """
        Atomically remove and return a session.

        Of two concurrent pops on the same id exactly one succeeds.

        Raises:
            UploadNotFoundError: If no open session has this id.
        """
        async with self._lock:
            session = self._sessions.pop(upload_id, None)
        if session is None:
            raise UploadNotFoundError(upload_id, op=op)
        logger.debug(f"Removed upload session {upload_id}")
        return session

    def list(self) -> List[UploadSession]:
        return list(self._sessions.values())
