"""
Streaming helpers on top of the chunked uploader.

Split a readable stream into fixed-size parts, stage them in order and
complete the upload, aborting it if anything fails before completion.
"""

import inspect
from typing import Any, Callable, Optional

import aiofiles
import aiofiles.os
from loguru import logger

from ..domain.errors import UploadNotFoundError, ValidationError
from ..domain.upload import AssemblyResult
from ..interfaces.upload import IChunkedUploader

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024

ProgressCallback = Callable[[int, int], None]


async def _read(source: Any, size: int) -> bytes:
    data = source.read(size)
    if inspect.isawaitable(data):
        data = await data
    return data or b""


async def _read_full(source: Any, size: int) -> bytes:
    """Read up to size bytes, stopping short only at end of stream."""
    buffer = bytearray()
    while len(buffer) < size:
        data = await _read(source, size - len(buffer))
        if not data:
            break
        buffer.extend(data)
    return bytes(buffer)


async def upload_stream(
    uploader: IChunkedUploader,
    target_path: str,
    source: Any,
    size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Optional[ProgressCallback] = None
) -> AssemblyResult:
    """
    Upload a binary stream as a chunked upload.

    Args:
        uploader: Uploader to stage parts with
        target_path: Final object location
        source: Object with a sync or async ``read(n)`` method
        size: Expected total size, reported to the progress callback
        chunk_size: Bytes per part
        progress: Called as progress(bytes_sent, size) after each part

    Returns:
        The assembly result of the completed upload

    Raises:
        ValidationError: If size or chunk_size is not positive
    """
    if size <= 0:
        raise ValidationError(f"size must be positive, got {size}", op="upload", path=target_path)
    if chunk_size <= 0:
        raise ValidationError(f"chunk size must be positive, got {chunk_size}",
                              op="upload", path=target_path)

    upload_id = await uploader.initiate_upload(target_path)
    sent = 0
    part_number = 1

    try:
        while True:
            chunk = await _read_full(source, chunk_size)
            if chunk:
                await uploader.upload_part(upload_id, part_number, chunk)
                sent += len(chunk)
                part_number += 1
                if progress is not None:
                    progress(sent, size)
            if len(chunk) < chunk_size:
                break
    except BaseException as e:
        logger.warning(f"Streaming upload {upload_id} to {target_path} failed after {sent} bytes: {e}")
        try:
            await uploader.abort_upload(upload_id)
        except UploadNotFoundError:
            logger.debug(f"Upload {upload_id} was already finalized")
        raise

    logger.debug(f"Streamed {sent} bytes in {part_number - 1} parts for upload {upload_id}")
    return await uploader.complete_upload(upload_id)


async def upload_file(
    uploader: IChunkedUploader,
    local_path: str,
    target_path: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Optional[ProgressCallback] = None
) -> AssemblyResult:
    """Upload a local file through the chunked uploader."""
    size = await aiofiles.os.path.getsize(local_path)
    async with aiofiles.open(local_path, "rb") as source:
        return await upload_stream(uploader, target_path, source, size, chunk_size, progress)
