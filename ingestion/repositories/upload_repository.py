"""
Upload and upload-file persistence
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from models.upload import Upload, UploadFile
from models.base import UploadStatus
from core.exceptions import CatalogError, UploadNotFoundError
import logging

logger = logging.getLogger(__name__)


class UploadRepository:
    """
    Read/write access to uploads and their files.

    Writes are flushed but not committed; the caller owns the transaction
    boundary so a presign request commits the upload and all of its files
    together.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_upload(self, upload: Upload) -> Upload:
        self.db.add(upload)
        await self._flush("INSERT", "uploads")
        return upload

    async def create_upload_file(self, upload_file: UploadFile) -> UploadFile:
        self.db.add(upload_file)
        await self._flush("INSERT", "upload_files")
        return upload_file

    async def find_by_id(self, tenant_id: str, upload_id: str) -> Upload:
        """Look up an upload scoped to a tenant; raise UploadNotFoundError if absent"""
        upload = await self.get(tenant_id, upload_id)
        if upload is None:
            raise UploadNotFoundError(
                "Upload not found",
                context={"tenant_id": tenant_id, "upload_id": upload_id}
            )
        return upload

    async def get(self, tenant_id: str, upload_id: str) -> Optional[Upload]:
        try:
            result = await self.db.execute(
                select(Upload).where(
                    Upload.tenant_id == tenant_id,
                    Upload.id == upload_id
                ).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise CatalogError(
                "Failed to fetch upload",
                context={"operation": "SELECT", "table_name": "uploads", "upload_id": upload_id},
                original_exception=e
            )
        return result.scalar_one_or_none()

    async def find_files_by_upload_id(self, tenant_id: str, upload_id: str) -> List[UploadFile]:
        try:
            result = await self.db.execute(
                select(UploadFile).where(
                    UploadFile.tenant_id == tenant_id,
                    UploadFile.upload_id == upload_id
                ).order_by(UploadFile.created_at, UploadFile.id)
            )
        except SQLAlchemyError as e:
            raise CatalogError(
                "Failed to fetch upload files",
                context={"operation": "SELECT", "table_name": "upload_files", "upload_id": upload_id},
                original_exception=e
            )
        return list(result.scalars().all())

    async def update_status(self, tenant_id: str, upload_id: str, status: UploadStatus) -> None:
        try:
            await self.db.execute(
                update(Upload)
                .where(Upload.tenant_id == tenant_id, Upload.id == upload_id)
                .values(status=status)
            )
        except SQLAlchemyError as e:
            raise CatalogError(
                "Failed to update upload status",
                context={"operation": "UPDATE", "table_name": "uploads", "upload_id": upload_id},
                original_exception=e
            )

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CatalogError(
                "Failed to commit upload changes",
                context={"operation": "COMMIT", "table_name": "uploads"},
                original_exception=e
            )

    async def _flush(self, operation: str, table_name: str) -> None:
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CatalogError(
                f"Failed to write {table_name}",
                context={"operation": operation, "table_name": table_name},
                original_exception=e
            )
