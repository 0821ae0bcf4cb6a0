"""
Ingestion-and-materialization pipeline components.

Two paths share one queue / idempotency / dead-letter pattern:

    Event path:
        EventIngestionService -> EventQueue -> EventBatchConsumer
        -> EventParquetWriter -> object store (+ best-effort metering)

    Upload path:
        UploadService (presign, complete) -> UploadQueue
        -> UploadConversionConsumer -> CSVImportWriter
        -> object store + dataset catalog (+ best-effort metering)

Subpackages:
    queue: Redis-backed work lists, idempotency markers and DLQ
    storage: S3-compatible object store client
    repositories: SQLAlchemy repositories for uploads, datasets and usage
    services: Synchronous request-path services
    writers: DuckDB-based Parquet writers
    consumers: Long-running worker loops

Modules:
    metering: Usage metering sink
    worker: Process entrypoint running the consumers with signal handling

Error Handling:
    Synchronous paths propagate core.exceptions errors to the API, which
    maps them to status codes. Consumers catch them per batch or per
    message and route the work to the dead-letter list.
"""

__all__ = [
    "EventIngestionService",
    "UploadService",
    "EventBatchConsumer",
    "UploadConversionConsumer",
    "EventParquetWriter",
    "CSVImportWriter",
    "MeteringService",
]
