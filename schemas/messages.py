"""
Pydantic schemas for queue payloads (event messages, upload jobs, DLQ entries)
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Any
from datetime import datetime, timezone


class EventMessage(BaseModel):
    """
    One accepted event waiting to be materialized.

    Identity is (tenant_id, event_id). properties is kept as the serialized
    JSON object so the columnar file stores it verbatim.
    """
    event_id: str
    tenant_id: str
    event_name: str
    properties: str = "{}"
    event_time: datetime
    received_at: datetime


class UploadJobFile(BaseModel):
    """File reference carried by an upload conversion job"""
    file_id: str
    file_name: str
    object_key: str
    content_type: str = ""
    size_bytes: int = 0


class UploadJobMessage(BaseModel):
    """Conversion job enqueued when an upload is completed"""
    upload_id: str
    tenant_id: str
    files: List[UploadJobFile] = Field(default_factory=list)


class DeadLetterEntry(BaseModel):
    """Append-only record of a message that failed processing"""
    message: Dict[str, Any]
    reason: str
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
