"""
Columnar writer for event batches.

A batch (already partitioned to one tenant) is staged into an in-memory
DuckDB table through a pandas DataFrame, exported with COPY ... (FORMAT
PARQUET) and uploaded in a single PUT.
"""

from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
import asyncio
import os
import tempfile
import uuid
import logging

import duckdb
import pandas as pd

from core.config import settings
from core.exceptions import ConversionError
from ingestion.storage.object_store import ObjectStore
from schemas.messages import EventMessage

logger = logging.getLogger(__name__)

EVENT_COLUMNS = ["event_id", "tenant_id", "event_name", "properties", "event_time", "received_at"]


@dataclass(frozen=True)
class BatchWriteResult:
    object_key: str
    row_count: int
    size_bytes: int


def event_object_key(
    tenant_id: str,
    first_event_id: str,
    now: Optional[datetime] = None,
    nonce: Optional[str] = None
) -> str:
    """
    events/{tenant}/dt={date}/{unix_ms}_{event_id[:8]}_{nonce}.parquet

    Keys sort by flush time within a day; the random nonce makes keys
    unique across workers flushing one tenant in the same millisecond.
    """
    now = now or datetime.now(timezone.utc)
    nonce = nonce or uuid.uuid4().hex[:8]
    return (
        f"events/{tenant_id}/dt={now.strftime('%Y-%m-%d')}/"
        f"{int(now.timestamp() * 1000)}_{first_event_id[:8]}_{nonce}.parquet"
    )


def _to_frame(events: List[EventMessage]) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "event_id": e.event_id,
                "tenant_id": e.tenant_id,
                "event_name": e.event_name,
                "properties": e.properties,
                "event_time": e.event_time,
                "received_at": e.received_at,
            }
            for e in events
        ],
        columns=EVENT_COLUMNS,
    )
    # Naive UTC so the columns land as TIMESTAMP, not TIMESTAMPTZ
    for column in ("event_time", "received_at"):
        df[column] = pd.to_datetime(df[column], utc=True).dt.tz_localize(None)
    return df


def events_to_parquet(events: List[EventMessage], scratch_dir: Optional[str] = None) -> bytes:
    """Convert a batch of events into Parquet bytes (blocking)"""
    df = _to_frame(events)

    with tempfile.TemporaryDirectory(prefix="lakehouse-parquet-", dir=scratch_dir) as tmp_dir:
        parquet_path = os.path.join(tmp_dir, "batch.parquet")
        con = duckdb.connect()
        try:
            con.register("events_df", df)
            con.execute(
                """
                CREATE TABLE events AS
                SELECT
                    CAST(event_id AS VARCHAR) AS event_id,
                    CAST(tenant_id AS VARCHAR) AS tenant_id,
                    CAST(event_name AS VARCHAR) AS event_name,
                    CAST(properties AS VARCHAR) AS properties,
                    CAST(event_time AS TIMESTAMP) AS event_time,
                    CAST(received_at AS TIMESTAMP) AS received_at
                FROM events_df
                """
            )
            con.execute(f"COPY events TO '{_quote_path(parquet_path)}' (FORMAT PARQUET)")
        finally:
            con.close()

        with open(parquet_path, "rb") as f:
            return f.read()


def _quote_path(path: str) -> str:
    return path.replace("'", "''")


class EventParquetWriter:
    """Writes one Parquet object per tenant batch"""

    def __init__(self, object_store: ObjectStore, scratch_dir: Optional[str] = None):
        self.object_store = object_store
        self.scratch_dir = scratch_dir or settings.SCRATCH_DIR

    async def write_batch(self, events: List[EventMessage]) -> Optional[BatchWriteResult]:
        """
        Convert and upload a single-tenant batch.

        Returns None for an empty batch.

        Raises:
            ConversionError: DuckDB could not stage or export the batch
            ObjectStoreError: The upload failed
        """
        if not events:
            return None

        tenant_id = events[0].tenant_id
        try:
            data = await asyncio.to_thread(events_to_parquet, events, self.scratch_dir)
        except (duckdb.Error, OSError, ValueError) as e:
            raise ConversionError(
                "Failed to convert event batch to Parquet",
                context={"tenant_id": tenant_id, "event_count": len(events)},
                original_exception=e
            )

        object_key = event_object_key(tenant_id, events[0].event_id)
        await self.object_store.put_parquet(object_key, data)

        logger.info(f"Wrote {len(events)} events for tenant {tenant_id} to {object_key}")
        return BatchWriteResult(object_key=object_key, row_count=len(events), size_bytes=len(data))
