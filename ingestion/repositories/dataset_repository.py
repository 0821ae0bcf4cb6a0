"""
Dataset catalog persistence with upsert logic (idempotency)
"""

from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from models.dataset import Dataset
from models.base import DatasetSourceType
from core.exceptions import CatalogError, DatasetNotFoundError
import logging
import uuid

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100


def clamp_limit(limit: int) -> int:
    if limit <= 0:
        return DEFAULT_LIST_LIMIT
    return min(limit, MAX_LIST_LIMIT)


def dialect_insert(db_session: AsyncSession, table):
    """INSERT construct that supports ON CONFLICT for the bound dialect"""
    if db_session.bind is not None and db_session.bind.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


class DatasetRepository:
    """
    Catalog of materialized datasets.

    Ensures:
    - One row per (tenant_id, name); re-imports update in place
    - Atomic single-statement upsert
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def upsert(
        self,
        tenant_id: str,
        name: str,
        source_type: DatasetSourceType,
        storage_path: str,
        schema_json: Optional[str] = None,
        row_count: Optional[int] = None,
        last_updated_at: Optional[datetime] = None
    ) -> None:
        """
        Insert or update a dataset keyed by (tenant_id, name).

        Last writer wins: schema, row count and storage path are replaced.
        """
        now = datetime.now(timezone.utc)
        values = {
            "id": str(uuid.uuid4()),
            "tenant_id": tenant_id,
            "name": name,
            "source_type": source_type,
            "schema_json": schema_json,
            "row_count": row_count,
            "storage_path": storage_path,
            "last_updated_at": last_updated_at or now,
            "created_at": now,
            "updated_at": now,
        }

        stmt = dialect_insert(self.db, Dataset).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "name"],
            set_={
                "source_type": stmt.excluded.source_type,
                "schema_json": stmt.excluded.schema_json,
                "row_count": stmt.excluded.row_count,
                "storage_path": stmt.excluded.storage_path,
                "last_updated_at": stmt.excluded.last_updated_at,
                "updated_at": stmt.excluded.updated_at,
            }
        )

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CatalogError(
                "Failed to upsert dataset",
                context={
                    "operation": "UPSERT",
                    "table_name": "datasets",
                    "tenant_id": tenant_id,
                    "name": name
                },
                original_exception=e
            )

        logger.info(f"Upserted dataset tenant={tenant_id} name={name} rows={row_count}")

    async def find_by_id(self, tenant_id: str, dataset_id: str) -> Dataset:
        try:
            result = await self.db.execute(
                select(Dataset).where(
                    Dataset.tenant_id == tenant_id,
                    Dataset.id == dataset_id
                )
            )
        except SQLAlchemyError as e:
            raise CatalogError(
                "Failed to fetch dataset",
                context={"operation": "SELECT", "table_name": "datasets"},
                original_exception=e
            )
        dataset = result.scalar_one_or_none()
        if dataset is None:
            raise DatasetNotFoundError(
                "Dataset not found",
                context={"tenant_id": tenant_id, "dataset_id": dataset_id}
            )
        return dataset

    async def find_by_name(self, tenant_id: str, name: str) -> Optional[Dataset]:
        result = await self.db.execute(
            select(Dataset).where(
                Dataset.tenant_id == tenant_id,
                Dataset.name == name
            )
        )
        return result.scalar_one_or_none()

    async def list_by_tenant(
        self,
        tenant_id: str,
        query: Optional[str] = None,
        source_type: Optional[DatasetSourceType] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0
    ) -> List[Dataset]:
        """List a tenant's datasets ordered by name, limit clamped to 1..100"""
        limit = clamp_limit(limit)

        stmt = select(Dataset).where(Dataset.tenant_id == tenant_id)
        if query:
            stmt = stmt.where(Dataset.name.like(f"%{query}%"))
        if source_type:
            stmt = stmt.where(Dataset.source_type == source_type)
        stmt = stmt.order_by(Dataset.name).limit(limit)
        if offset > 0:
            stmt = stmt.offset(offset)

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise CatalogError(
                "Failed to list datasets",
                context={"operation": "SELECT", "table_name": "datasets"},
                original_exception=e
            )
        return list(result.scalars().all())
