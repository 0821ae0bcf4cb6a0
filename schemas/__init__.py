"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for the two kinds of payload the
pipeline moves around:

Schemas:
    messages: Queue payloads (EventMessage, UploadJobMessage, DeadLetterEntry)
    api: HTTP request/response models for events, uploads, datasets, health

Features:
    - Automatic request validation
    - JSON serialization for the queue store
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas.messages import EventMessage, UploadJobMessage
    from schemas.api import IngestEventRequest, CreatePresignRequest
"""

__all__ = [
    "EventMessage",
    "UploadJobFile",
    "UploadJobMessage",
    "DeadLetterEntry",
    "IngestEventRequest",
    "IngestEventResponse",
    "CreatePresignRequest",
    "CreatePresignResponse",
    "UploadResponse",
    "DatasetResponse",
    "HealthCheckResponse",
]
