"""
Core utilities and configuration for the lakehouse ingestion pipeline.

This package provides foundational components shared by the API and the
worker processes:

Modules:
    config: Application configuration and environment variable management
    database: Async engine / session factory creation and table bootstrap
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration
    metrics: Prometheus counters and histograms for both pipelines
    resources: Process-wide collaborators built once at startup

Usage:
    from core.config import settings
    from core.logging import setup_logging
    from core.resources import create_resources
    from core.exceptions import DuplicateEventError, QueueError

Example:
    setup_logging()
    resources = create_resources()
    try:
        ...
    finally:
        await resources.aclose()
"""

__all__ = [
    "settings",
    "setup_logging",
    "create_resources",
    # Exceptions
    "IngestionException",
    "ValidationError",
    "NotFoundError",
    "UploadNotFoundError",
    "DatasetNotFoundError",
    "DuplicateError",
    "DuplicateEventError",
    "UploadAlreadyProcessedError",
    "ConflictError",
    "UploadAlreadyCompleteError",
    "TransientInfrastructureError",
    "QueueError",
    "ObjectStoreError",
    "CatalogError",
    "ConversionError",
]
