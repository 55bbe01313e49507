"""
Chunked upload API router.

Part payloads travel as the raw request body; every other request and
response is JSON.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from ....core.domain.errors import UploadNotFoundError
from ....core.services.uploader import ChunkedUploader
from ..dependencies import get_uploader


class CreateUploadRequest(BaseModel):
    """Upload initiation request model."""
    target_path: str = Field(..., description="Final object location")


class CreateUploadResponse(BaseModel):
    """Upload initiation response model."""
    upload_id: str = Field(..., description="Opaque upload identifier")
    target_path: str = Field(..., description="Normalized target path")


class PartResponse(BaseModel):
    """Staged part response model."""
    upload_id: str
    part_number: int
    size: int


class AssemblyResponse(BaseModel):
    """Completed upload response model."""
    upload_id: str
    target_path: str
    part_count: int
    size: int = Field(..., description="Size of the assembled object in bytes")
    rounds: int = Field(..., description="Merge rounds needed")
    strategy: str


class CleanupResponse(BaseModel):
    """Aborted upload response model."""
    upload_id: str
    removed: int
    failures: List[str] = Field(default_factory=list)


class SessionResponse(BaseModel):
    """Open upload session model."""
    upload_id: str
    target_path: str
    state: str
    created_at: float
    updated_at: float
    parts_staged: int
    bytes_staged: int


class SessionListResponse(BaseModel):
    uploads: List[SessionResponse]
    statistics: Optional[Dict[str, Any]] = None


router = APIRouter(
    prefix="/api/uploads",
    tags=["uploads"],
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Upload not found"},
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid request"},
    }
)


@router.post("", response_model=CreateUploadResponse, status_code=status.HTTP_201_CREATED)
async def initiate_upload(
    request: CreateUploadRequest,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> CreateUploadResponse:
    """Start a chunked upload."""
    upload_id = await uploader.initiate_upload(request.target_path)
    session = uploader.get_upload_info(upload_id)
    target_path = session.target_path if session else request.target_path
    return CreateUploadResponse(upload_id=upload_id, target_path=target_path)


@router.put("/{upload_id}/parts/{part_number}", response_model=PartResponse)
async def upload_part(
    upload_id: str,
    part_number: int,
    request: Request,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> PartResponse:
    """Stage one part; the request body is the part payload."""
    data = await request.body()
    handle = await uploader.upload_part(upload_id, part_number, data)
    return PartResponse(upload_id=upload_id, part_number=handle.part_number, size=handle.size)


@router.post("/{upload_id}/complete", response_model=AssemblyResponse)
async def complete_upload(
    upload_id: str,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> AssemblyResponse:
    """Assemble the staged parts into the target object."""
    result = await uploader.complete_upload(upload_id)
    return AssemblyResponse(**result.to_dict())


@router.delete("/{upload_id}", response_model=CleanupResponse)
async def abort_upload(
    upload_id: str,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> CleanupResponse:
    """Abort an upload and discard its staged parts."""
    report = await uploader.abort_upload(upload_id)
    return CleanupResponse(**report.to_dict())


@router.get("", response_model=SessionListResponse)
async def list_uploads(
    include_statistics: bool = False,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> SessionListResponse:
    """List open uploads."""
    sessions = [SessionResponse(**session.to_dict()) for session in uploader.list_uploads()]
    statistics = uploader.get_statistics() if include_statistics else None
    return SessionListResponse(uploads=sessions, statistics=statistics)


@router.get("/{upload_id}", response_model=SessionResponse)
async def get_upload(
    upload_id: str,
    uploader: ChunkedUploader = Depends(get_uploader)
) -> SessionResponse:
    """Get one open upload."""
    session = uploader.get_upload_info(upload_id)
    if session is None:
        raise UploadNotFoundError(upload_id, op="get-upload")
    return SessionResponse(**session.to_dict())
