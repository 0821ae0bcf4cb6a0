"""
SQLAlchemy ORM models for the relational metadata this pipeline writes.

Models:
    base: Base declarative class and shared enums (UploadStatus, DatasetSourceType, UsageType)
    upload: Upload sessions and their files
    dataset: Catalog of materialized columnar datasets
    usage: Daily usage aggregates and append-only usage events

Database Schema:
    All models inherit from the Base declarative class and stick to portable
    column types so the same metadata runs on PostgreSQL in production and
    SQLite in tests.

Usage:
    from models.upload import Upload, UploadFile
    from models.dataset import Dataset
    from models.base import UploadStatus

Relationships:
    - Upload → UploadFile (one-to-many)
    - Dataset rows are keyed by (tenant_id, name), independent of uploads
"""

__all__ = [
    "Base",
    "UploadStatus",
    "DatasetSourceType",
    "UsageType",
    "Upload",
    "UploadFile",
    "Dataset",
    "UsageDaily",
    "UsageEvent",
]
