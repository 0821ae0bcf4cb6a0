"""
Prometheus metrics for the event and upload pipelines.

Module-level singletons registered on the default registry and scraped via
GET /metrics on the API (the worker exposes the same registry).
"""

from prometheus_client import Counter, Histogram

# Event path
EVENTS_RECEIVED_TOTAL = Counter("events_received_total", "Total events received by API")
EVENTS_ENQUEUED_TOTAL = Counter("events_enqueued_total", "Total events enqueued successfully")
EVENTS_DUPLICATE_TOTAL = Counter("events_duplicate_total", "Total duplicate events skipped")
EVENTS_PROCESSED_TOTAL = Counter("events_processed_total", "Total events processed by worker")
EVENTS_FAILED_TOTAL = Counter("events_failed_total", "Total events failed and sent to DLQ")
EVENTS_BATCH_SIZE = Histogram(
    "events_batch_size",
    "Number of events per tenant batch",
    buckets=(1, 10, 50, 100, 250, 500, 1000, 2500),
)
EVENTS_BATCH_DURATION = Histogram(
    "events_batch_duration_seconds",
    "Time to convert and upload a tenant batch",
)

# Upload path
UPLOADS_PROCESSED_TOTAL = Counter("uploads_processed_total", "Total uploads processed by worker")
UPLOADS_FAILED_TOTAL = Counter("uploads_failed_total", "Total uploads failed and sent to DLQ")
UPLOADS_FILES_CONVERTED_TOTAL = Counter("uploads_files_converted_total", "Total CSV files converted to Parquet")
UPLOADS_ROWS_TOTAL = Counter("uploads_rows_total", "Total rows imported from CSV files")
UPLOADS_DUPLICATE_TOTAL = Counter("uploads_duplicate_total", "Total duplicate uploads skipped")
UPLOADS_DURATION = Histogram(
    "uploads_processing_duration_seconds",
    "Time to process an upload job",
)
