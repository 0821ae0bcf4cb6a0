from sqlalchemy import Column, String, BigInteger, Integer, Enum, DateTime, Index
from datetime import datetime, timezone
from models.base import Base, UsageType


def _utcnow():
    return datetime.now(timezone.utc)


class UsageDaily(Base):
    """
    Per-tenant, per-day usage aggregate.

    Counters are advisory: they are incremented best-effort by the
    consumers after data is durably written.
    """
    __tablename__ = "usage_daily"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD (UTC)

    events_count = Column(BigInteger, nullable=False, default=0)
    rows_count = Column(BigInteger, nullable=False, default=0)
    storage_bytes = Column(BigInteger, nullable=False, default=0)
    uploads_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_usage_daily_tenant_date", "tenant_id", "date", unique=True),
    )


class UsageEvent(Base):
    """Append-only audit row for each usage increment"""
    __tablename__ = "usage_events"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    event_type = Column(
        Enum(UsageType, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32),
        nullable=False,
    )
    delta = Column(BigInteger, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
