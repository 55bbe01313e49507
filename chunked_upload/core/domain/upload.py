"""
Domain models for chunked uploads.

An UploadSession is the bookkeeping record for one in-progress upload.
PartHandles reference staged bytes; intermediates produced while
composing are tracked on the session apart from the caller's parts.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .errors import CleanupFailureError


class UploadState(Enum):
    """Upload session states."""
    OPEN = "open"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class PartHandle:
    """Reference to one staged part or intermediate object."""
    part_number: int
    location: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "part_number": self.part_number,
            "location": self.location,
            "size": self.size,
        }


@dataclass
class UploadSession:
    """State of one chunked upload."""
    upload_id: str
    target_path: str
    staging_namespace: str
    state: UploadState = UploadState.OPEN
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    intermediates: List[PartHandle] = field(default_factory=list)

    # Progress counters, informational only
    parts_staged: int = 0
    bytes_staged: int = 0

    @property
    def is_open(self) -> bool:
        return self.state == UploadState.OPEN

    def record_part(self, handle: PartHandle) -> None:
        """Account for a successfully staged part."""
        self.parts_staged += 1
        self.bytes_staged += handle.size
        self.updated_at = time.time()

    def transition(self, state: UploadState) -> None:
        self.state = state
        self.updated_at = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upload_id": self.upload_id,
            "target_path": self.target_path,
            "staging_namespace": self.staging_namespace,
            "state": self.state.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "parts_staged": self.parts_staged,
            "bytes_staged": self.bytes_staged,
        }


@dataclass
class AssemblyResult:
    """
    Outcome of a successful CompleteUpload.

    rounds counts merge rounds only, as given by composition_rounds: a
    single part is moved into place in zero rounds under every strategy,
    and concatenation or block commit of two or more parts takes one.
    """
    upload_id: str
    target_path: str
    part_count: int
    size: int
    rounds: int
    strategy: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upload_id": self.upload_id,
            "target_path": self.target_path,
            "part_count": self.part_count,
            "size": self.size,
            "rounds": self.rounds,
            "strategy": self.strategy,
        }


@dataclass
class CleanupReport:
    """What a best-effort cleanup removed and what it could not."""
    upload_id: str
    removed: int = 0
    failures: List[CleanupFailureError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upload_id": self.upload_id,
            "removed": self.removed,
            "failures": [str(failure) for failure in self.failures],
        }
