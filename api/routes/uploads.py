"""
Upload endpoints: presign and complete
"""

from fastapi import APIRouter, Depends, status
from api.dependencies import get_tenant_id, get_upload_service
from ingestion.services.upload_service import UploadFileInput, UploadService
from schemas.api import (
    CreatePresignRequest,
    CreatePresignResponse,
    PresignedFileResponse,
    UploadFileResponse,
    UploadResponse,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post("/presign", response_model=CreatePresignResponse, status_code=status.HTTP_201_CREATED)
async def create_presign(
    body: CreatePresignRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: UploadService = Depends(get_upload_service)
):
    """Create an upload and one time-boxed PUT URL per file"""
    result = await service.create_presign(
        tenant_id,
        [
            UploadFileInput(filename=f.filename, content_type=f.content_type, size_bytes=f.size_bytes)
            for f in body.files
        ]
    )
    return CreatePresignResponse(
        upload_id=result.upload_id,
        files=[
            PresignedFileResponse(
                file_id=f.file_id,
                filename=f.filename,
                presigned_url=f.presigned_url,
                object_key=f.object_key,
                expires_at=f.expires_at
            )
            for f in result.files
        ]
    )


@router.post("/{upload_id}/complete", response_model=UploadResponse)
async def complete_upload(
    upload_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: UploadService = Depends(get_upload_service)
):
    """
    Mark an upload as uploaded and enqueue its conversion.

    Not repeatable: a second call returns 409.
    """
    upload, files = await service.complete(tenant_id, upload_id)
    return UploadResponse(
        id=upload.id,
        tenant_id=upload.tenant_id,
        status=upload.status,
        created_at=upload.created_at,
        updated_at=upload.updated_at,
        files=[UploadFileResponse.model_validate(f) for f in files]
    )
