"""
Upload orchestration service: presigned direct-to-storage uploads and
completion-triggered conversion jobs.
"""

from typing import List, Tuple
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
import os
import uuid
import logging

from core.config import settings
from core.exceptions import ValidationError, UploadAlreadyCompleteError
from ingestion.queue.redis_queue import UploadQueue
from ingestion.repositories.upload_repository import UploadRepository
from ingestion.storage.object_store import ObjectStore
from models.base import UploadStatus
from models.upload import Upload, UploadFile
from schemas.messages import UploadJobFile, UploadJobMessage

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({
    ".csv", ".json", ".parquet", ".xlsx", ".txt", ".tsv", ".gz", ".zip"
})


@dataclass(frozen=True)
class UploadFileInput:
    filename: str
    content_type: str
    size_bytes: int


@dataclass(frozen=True)
class PresignedFile:
    file_id: str
    filename: str
    presigned_url: str
    object_key: str
    expires_at: datetime


@dataclass(frozen=True)
class PresignResult:
    upload_id: str
    files: List[PresignedFile]


def file_extension(filename: str) -> str:
    """
    Lower-cased extension including the dot ("" when absent).

    Everything from the last dot of the base name counts, so a bare
    ".csv" is a CSV file (os.path.splitext would treat it as a dotfile).
    """
    base = os.path.basename(filename)
    dot = base.rfind(".")
    return base[dot:].lower() if dot >= 0 else ""


def upload_object_key(tenant_id: str, date_part: str, file_id: str, ext: str) -> str:
    return f"uploads/{tenant_id}/{date_part}/{file_id}{ext}"


class UploadService:
    """
    Two operations over an upload session:

    - create_presign: validate file metadata, persist the upload and its
      files, hand out one time-boxed PUT URL per file
    - complete: flip presigned -> uploaded once, then enqueue a conversion job
    """

    def __init__(
        self,
        db_session: AsyncSession,
        object_store: ObjectStore,
        upload_queue: UploadQueue,
        max_files: int = None,
        max_file_bytes: int = None,
        presign_expiry_seconds: int = None
    ):
        self.db = db_session
        self.uploads = UploadRepository(db_session)
        self.object_store = object_store
        self.queue = upload_queue
        self.max_files = max_files or settings.MAX_FILES_PER_UPLOAD
        self.max_file_bytes = max_file_bytes or settings.MAX_UPLOAD_FILE_BYTES
        self.presign_expiry_seconds = presign_expiry_seconds or settings.PRESIGN_EXPIRY_SECONDS

    def validate(self, files: List[UploadFileInput]) -> None:
        """Reject the whole request before any record is created"""
        if not files:
            raise ValidationError(
                "At least one file is required",
                context={"field_name": "files", "validation_rule": "min_items=1"}
            )
        if len(files) > self.max_files:
            raise ValidationError(
                f"Too many files: max {self.max_files}",
                context={
                    "field_name": "files",
                    "field_value": len(files),
                    "validation_rule": f"max_items={self.max_files}"
                }
            )

        for f in files:
            if f.size_bytes <= 0:
                raise ValidationError(
                    f"Invalid size for file {f.filename!r}",
                    context={"field_name": "size_bytes", "field_value": f.size_bytes, "validation_rule": "min=1"}
                )
            if f.size_bytes > self.max_file_bytes:
                raise ValidationError(
                    f"File {f.filename!r} exceeds max size {self.max_file_bytes} bytes",
                    context={
                        "field_name": "size_bytes",
                        "field_value": f.size_bytes,
                        "validation_rule": f"max={self.max_file_bytes}"
                    }
                )
            ext = file_extension(f.filename)
            if ext not in ALLOWED_EXTENSIONS:
                raise ValidationError(
                    f"File extension {ext!r} is not allowed",
                    context={"field_name": "filename", "field_value": f.filename, "validation_rule": "extension"}
                )

    async def create_presign(self, tenant_id: str, files: List[UploadFileInput]) -> PresignResult:
        self.validate(files)

        upload_id = str(uuid.uuid4())
        date_part = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        presigned = []

        try:
            await self.uploads.create_upload(Upload(
                id=upload_id,
                tenant_id=tenant_id,
                status=UploadStatus.PRESIGNED
            ))

            for f in files:
                file_id = str(uuid.uuid4())
                object_key = upload_object_key(tenant_id, date_part, file_id, file_extension(f.filename))

                url, expires_at = self.object_store.generate_presigned_put_url(
                    object_key, f.content_type, self.presign_expiry_seconds
                )

                await self.uploads.create_upload_file(UploadFile(
                    id=file_id,
                    tenant_id=tenant_id,
                    upload_id=upload_id,
                    file_name=f.filename,
                    object_key=object_key,
                    content_type=f.content_type,
                    size_bytes=f.size_bytes
                ))

                presigned.append(PresignedFile(
                    file_id=file_id,
                    filename=f.filename,
                    presigned_url=url,
                    object_key=object_key,
                    expires_at=expires_at
                ))

            await self.uploads.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Presigned upload {upload_id} for tenant {tenant_id} ({len(presigned)} files)")
        return PresignResult(upload_id=upload_id, files=presigned)

    async def complete(self, tenant_id: str, upload_id: str) -> Tuple[Upload, List[UploadFile]]:
        """
        Mark an upload as uploaded and enqueue its conversion job.

        Not idempotent: a second call raises UploadAlreadyCompleteError. The
        job is enqueued only after the status change commits; a crash in
        between leaves an uploaded-but-unprocessed record.
        """
        upload = await self.uploads.find_by_id(tenant_id, upload_id)

        if upload.status == UploadStatus.UPLOADED:
            raise UploadAlreadyCompleteError(
                "Upload already completed",
                context={"tenant_id": tenant_id, "upload_id": upload_id}
            )

        await self.uploads.update_status(tenant_id, upload_id, UploadStatus.UPLOADED)
        await self.uploads.commit()

        upload = await self.uploads.find_by_id(tenant_id, upload_id)
        files = await self.uploads.find_files_by_upload_id(tenant_id, upload_id)

        await self.queue.enqueue(UploadJobMessage(
            upload_id=upload_id,
            tenant_id=tenant_id,
            files=[
                UploadJobFile(
                    file_id=f.id,
                    file_name=f.file_name,
                    object_key=f.object_key,
                    content_type=f.content_type or "",
                    size_bytes=f.size_bytes
                )
                for f in files
            ]
        ))

        logger.info(f"Upload {upload_id} completed for tenant {tenant_id}, conversion job enqueued")
        return upload, files
