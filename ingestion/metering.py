"""
Usage metering sink shared by both consumers.

Usage is advisory here: consumers call the *_best_effort variants, which log
and swallow any failure and report the outcome as a bool. The plain
record_* methods raise, for callers that want to know.
"""

from typing import Callable
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ingestion.repositories.usage_repository import UsageRepository
from models.base import UsageType

logger = logging.getLogger(__name__)


class MeteringService:
    """
    Per-tenant usage counters (events, rows, storage bytes, uploads).

    Each call opens its own short-lived session so a metering failure never
    shares a transaction with the data path.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def record_events(self, tenant_id: str, count: int, size_bytes: int = 0) -> None:
        """Count events written to columnar storage"""
        async with self.session_factory() as session:
            repo = UsageRepository(session)
            await repo.increment(tenant_id, events_count=count, storage_bytes=size_bytes)
            await repo.record_event(tenant_id, UsageType.EVENTS_INGEST, count)
            if size_bytes:
                await repo.record_event(tenant_id, UsageType.STORAGE_WRITE, size_bytes)

    async def record_upload(self, tenant_id: str, rows: int, size_bytes: int) -> None:
        """Count rows and bytes imported from an upload"""
        async with self.session_factory() as session:
            repo = UsageRepository(session)
            await repo.increment(tenant_id, rows_count=rows, storage_bytes=size_bytes)
            await repo.record_event(tenant_id, UsageType.STORAGE_WRITE, size_bytes)

    async def record_upload_count(self, tenant_id: str) -> None:
        async with self.session_factory() as session:
            repo = UsageRepository(session)
            await repo.increment_uploads(tenant_id, 1)
            await repo.record_event(tenant_id, UsageType.UPLOAD_COMPLETE, 1)

    async def record_events_best_effort(self, tenant_id: str, count: int, size_bytes: int = 0) -> bool:
        try:
            await self.record_events(tenant_id, count, size_bytes)
            return True
        except Exception as e:
            logger.warning(f"Failed to record event usage for tenant {tenant_id}: {e}")
            return False

    async def record_upload_best_effort(self, tenant_id: str, rows: int, size_bytes: int) -> bool:
        try:
            await self.record_upload(tenant_id, rows, size_bytes)
            return True
        except Exception as e:
            logger.warning(f"Failed to record upload usage for tenant {tenant_id}: {e}")
            return False

    async def record_upload_count_best_effort(self, tenant_id: str) -> bool:
        try:
            await self.record_upload_count(tenant_id)
            return True
        except Exception as e:
            logger.warning(f"Failed to record upload count for tenant {tenant_id}: {e}")
            return False
