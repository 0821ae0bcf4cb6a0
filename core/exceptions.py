"""
Custom exceptions for the ingestion pipeline with structured error context.

This module provides the exception hierarchy shared by the synchronous
request path (event ingestion, upload orchestration) and the long-running
consumers. Each exception carries context information for debugging and
monitoring.

Exception Hierarchy:
    IngestionException (base)
    ├── ValidationError
    ├── NotFoundError
    │   ├── UploadNotFoundError
    │   └── DatasetNotFoundError
    ├── DuplicateError
    │   ├── DuplicateEventError
    │   └── UploadAlreadyProcessedError
    ├── ConflictError
    │   └── UploadAlreadyCompleteError
    └── TransientInfrastructureError
        ├── QueueError
        ├── ObjectStoreError
        ├── CatalogError
        └── ConversionError

Request handlers map these onto HTTP status codes; consumers catch them per
batch or per message and route the work item to a dead-letter list.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (tenant, upload id, key, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Client Errors (rejected synchronously, no side effect)
# ============================================================================

class ValidationError(IngestionException):
    """
    Exception raised when a request has a bad shape, size or extension.

    Context should include:
        - field_name: Name of the field that failed validation
        - field_value: Value that failed validation
        - validation_rule: The validation rule that was violated
    """
    pass


class NotFoundError(IngestionException):
    """Base exception for unknown resource references."""
    pass


class UploadNotFoundError(NotFoundError):
    """Upload id is unknown for the tenant."""
    pass


class DatasetNotFoundError(NotFoundError):
    """Dataset id is unknown for the tenant."""
    pass


# ============================================================================
# Idempotency Errors
# ============================================================================

class DuplicateError(IngestionException):
    """
    Exception raised when an idempotency marker is already set.

    Context should include:
        - key: The idempotency key that was found
    """
    pass


class DuplicateEventError(DuplicateError):
    """Event (tenant_id, event_id) was already accepted."""
    pass


class UploadAlreadyProcessedError(DuplicateError):
    """Upload conversion job was already claimed by a consumer."""
    pass


class ConflictError(IngestionException):
    """Base exception for state transitions that are no longer allowed."""
    pass


class UploadAlreadyCompleteError(ConflictError):
    """Upload was already marked uploaded; completion is not repeatable."""
    pass


# ============================================================================
# Infrastructure Errors
# ============================================================================

class TransientInfrastructureError(IngestionException):
    """
    Base exception for failed calls to external collaborators.

    Synchronous paths surface these as server errors; consumers convert
    them into dead-letter entries.
    """
    pass


class QueueError(TransientInfrastructureError):
    """
    Exception raised when a queue store call fails.

    Context should include:
        - operation: enqueue, dequeue, mark_processed, enqueue_dlq, ...
        - key: Redis key involved
    """
    pass


class ObjectStoreError(TransientInfrastructureError):
    """
    Exception raised when an object store call fails.

    Context should include:
        - operation: put, download, presign
        - object_key: Key of the object
    """
    pass


class CatalogError(TransientInfrastructureError):
    """
    Exception raised when a catalog / relational metadata call fails.

    Context should include:
        - operation: Type of database operation (INSERT, UPDATE, UPSERT)
        - table_name: Name of the table
    """
    pass


class ConversionError(TransientInfrastructureError):
    """
    Exception raised when the analytical engine cannot convert a batch or file.

    Context should include:
        - tenant_id: Tenant the data belongs to
        - file_name / event_count: What was being converted
    """
    pass
