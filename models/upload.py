from sqlalchemy import Column, String, BigInteger, Enum, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from models.base import Base, UploadStatus


def _utcnow():
    return datetime.now(timezone.utc)


class Upload(Base):
    """
    One client upload session (a set of files presigned together).

    Lifecycle:
    - Created with status=presigned when URLs are handed out
    - Flipped to uploaded exactly once when the client reports completion
    - Only the status changes afterwards
    """
    __tablename__ = "uploads"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    status = Column(
        Enum(UploadStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        default=UploadStatus.PRESIGNED,
        nullable=False,
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationships
    files = relationship("UploadFile", back_populates="upload", order_by="UploadFile.created_at")

    __table_args__ = (
        Index("idx_upload_tenant_created", "tenant_id", "created_at"),
    )


class UploadFile(Base):
    """
    A single file within an upload. Read-only after creation.

    object_key points at the raw bytes the client PUTs directly to the
    object store: uploads/{tenant}/{date}/{file_id}.{ext}
    """
    __tablename__ = "upload_files"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    upload_id = Column(String(36), ForeignKey("uploads.id"), nullable=False, index=True)

    file_name = Column(String(500), nullable=False)
    object_key = Column(String(1024), nullable=False)
    content_type = Column(String(255), nullable=True)
    size_bytes = Column(BigInteger, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    upload = relationship("Upload", back_populates="files")
