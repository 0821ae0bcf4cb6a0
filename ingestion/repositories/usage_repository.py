"""
Per-tenant daily usage counters
"""

from typing import Optional
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from models.usage import UsageDaily, UsageEvent
from models.base import UsageType
from ingestion.repositories.dataset_repository import dialect_insert
from core.exceptions import CatalogError
import logging
import uuid

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = ("events_count", "rows_count", "storage_bytes", "uploads_count")


def usage_date(now: Optional[datetime] = None) -> str:
    """Calendar day (UTC) a usage increment is attributed to"""
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d")


class UsageRepository:
    """
    Additive counters on the usage_daily table.

    Each increment is a single INSERT ... ON CONFLICT DO UPDATE that adds
    the delta to the existing row, so concurrent consumers never lose counts.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def increment(self, tenant_id: str, date: Optional[str] = None, **deltas: int) -> None:
        unknown = set(deltas) - set(COUNTER_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown usage counters: {sorted(unknown)}")

        date = date or usage_date()
        now = datetime.now(timezone.utc)
        values = {
            "id": str(uuid.uuid4()),
            "tenant_id": tenant_id,
            "date": date,
            "created_at": now,
            "updated_at": now,
        }
        for column in COUNTER_COLUMNS:
            values[column] = deltas.get(column, 0)

        stmt = dialect_insert(self.db, UsageDaily).values(**values)
        set_ = {
            column: getattr(UsageDaily, column) + getattr(stmt.excluded, column)
            for column in deltas
        }
        set_["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(index_elements=["tenant_id", "date"], set_=set_)

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CatalogError(
                "Failed to increment usage",
                context={
                    "operation": "UPSERT",
                    "table_name": "usage_daily",
                    "tenant_id": tenant_id,
                    "date": date
                },
                original_exception=e
            )

    async def increment_uploads(self, tenant_id: str, count: int = 1) -> None:
        await self.increment(tenant_id, uploads_count=count)

    async def record_event(self, tenant_id: str, event_type: UsageType, delta: int) -> None:
        """Append an audit row for a usage increment"""
        self.db.add(UsageEvent(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            event_type=event_type,
            delta=delta
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CatalogError(
                "Failed to record usage event",
                context={"operation": "INSERT", "table_name": "usage_events", "tenant_id": tenant_id},
                original_exception=e
            )

    async def find_daily(self, tenant_id: str, date: Optional[str] = None) -> Optional[UsageDaily]:
        result = await self.db.execute(
            select(UsageDaily).where(
                UsageDaily.tenant_id == tenant_id,
                UsageDaily.date == (date or usage_date())
            )
        )
        return result.scalar_one_or_none()
