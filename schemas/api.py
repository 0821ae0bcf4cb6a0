"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime, timezone
from models.base import UploadStatus, DatasetSourceType


# ============================================================================
# Event Schemas
# ============================================================================

class IngestEventRequest(BaseModel):
    """Tenant-scoped event submitted by a tracker or backend"""
    event_id: str = Field(..., min_length=1, max_length=255)
    event_name: str = Field(..., min_length=1, max_length=255)
    properties: Optional[Dict[str, Any]] = None
    event_time: datetime = Field(..., description="RFC3339 timestamp")

    @validator("event_id", "event_name")
    def strip_identifiers(cls, v):
        """Reject identifiers that are blank after stripping"""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class IngestEventResponse(BaseModel):
    event_id: str
    status: Literal["accepted"] = "accepted"


class EventCount(BaseModel):
    event_name: str
    count: int


class EventsSummaryResponse(BaseModel):
    counts: List[EventCount] = Field(default_factory=list)
    total: int = 0


# ============================================================================
# Upload Schemas
# ============================================================================

class PresignFileRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=500)
    content_type: str = ""
    size_bytes: int


class CreatePresignRequest(BaseModel):
    files: List[PresignFileRequest]


class PresignedFileResponse(BaseModel):
    file_id: str
    filename: str
    presigned_url: str
    object_key: str
    expires_at: datetime


class CreatePresignResponse(BaseModel):
    upload_id: str
    files: List[PresignedFileResponse]


class UploadFileResponse(BaseModel):
    id: str
    file_name: str
    object_key: str
    content_type: Optional[str] = None
    size_bytes: int

    class Config:
        from_attributes = True


class UploadResponse(BaseModel):
    id: str
    tenant_id: str
    status: UploadStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    files: List[UploadFileResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
        use_enum_values = True


# ============================================================================
# Dataset Schemas
# ============================================================================

class DatasetResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    source_type: DatasetSourceType
    schema_json: Optional[str] = None
    row_count: Optional[int] = None
    storage_path: str
    last_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class DatasetListResponse(BaseModel):
    items: List[DatasetResponse] = Field(default_factory=list)
    limit: int
    offset: int


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    database_connected: bool
    queue_connected: bool

    @classmethod
    def from_checks(cls, database_connected: bool, queue_connected: bool) -> "HealthCheckResponse":
        """Determine overall health status from dependency checks"""
        if database_connected and queue_connected:
            status = "healthy"
        elif database_connected or queue_connected:
            status = "degraded"
        else:
            status = "unhealthy"
        return cls(
            status=status,
            database_connected=database_connected,
            queue_connected=queue_connected,
        )


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[Dict[str, Any]] = None
