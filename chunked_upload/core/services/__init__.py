"""
Core upload services: session registry, part staging, assembly and cleanup.
"""

from .registry import UploadSessionRegistry
from .stager import PartStager
from .strategies import (
    DirectConcatenationStrategy, BatchedCompositionStrategy, BlockCommitStrategy,
    ObjectMergeStrategy, select_merge_strategy, DEFAULT_STAGING_PREFIX, DEFAULT_COMPOSE_FAN_IN
)
from .assembler import Assembler, partition_runs, composition_rounds
from .cleanup import CleanupManager
from .uploader import ChunkedUploader
from .streaming import upload_stream, upload_file, DEFAULT_CHUNK_SIZE

__all__ = [
    "UploadSessionRegistry",
    "PartStager",
    "ObjectMergeStrategy",
    "DirectConcatenationStrategy",
    "BatchedCompositionStrategy",
    "BlockCommitStrategy",
    "select_merge_strategy",
    "DEFAULT_STAGING_PREFIX",
    "DEFAULT_COMPOSE_FAN_IN",
    "Assembler",
    "partition_runs",
    "composition_rounds",
    "CleanupManager",
    "ChunkedUploader",
    "upload_stream",
    "upload_file",
    "DEFAULT_CHUNK_SIZE",
]
