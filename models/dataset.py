from sqlalchemy import Column, String, BigInteger, Enum, Text, DateTime, Index
from datetime import datetime, timezone
from models.base import Base, DatasetSourceType


def _utcnow():
    return datetime.now(timezone.utc)


class Dataset(Base):
    """
    Catalog entry for a materialized columnar dataset.

    Design Decisions:
    - (tenant_id, name) is unique; a new conversion with the same name
      overwrites schema, row count and storage path (last writer wins)
    - schema_json is an opaque JSON list of {column_name, column_type}
    - storage_path is the object store key of the Parquet output
    """
    __tablename__ = "datasets"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    source_type = Column(
        Enum(DatasetSourceType, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    schema_json = Column(Text, nullable=True)
    row_count = Column(BigInteger, nullable=True)
    storage_path = Column(String(1024), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_dataset_tenant_name", "tenant_id", "name", unique=True),
    )
