"""
Event batch consumer: buffers dequeued events and flushes them to one
Parquet file per tenant.

States: WAITING -> BUFFERING -> FLUSHING -> WAITING, with a timer edge
(flush after the interval elapses regardless of size) and a shutdown edge
that drains the buffer before the loop exits.
"""

from typing import Callable, Dict, List, Optional
import asyncio
import time
import logging

from core import metrics
from core.config import settings
from core.exceptions import IngestionException, QueueError
from ingestion.metering import MeteringService
from ingestion.queue.redis_queue import EventQueue
from ingestion.writers.parquet_writer import EventParquetWriter
from schemas.messages import EventMessage

logger = logging.getLogger(__name__)

DEQUEUE_ERROR_BACKOFF_SECONDS = 1.0


def partition_by_tenant(batch: List[EventMessage]) -> Dict[str, List[EventMessage]]:
    """Group a flushed batch so that no output file mixes tenants"""
    partitions: Dict[str, List[EventMessage]] = {}
    for msg in batch:
        partitions.setdefault(msg.tenant_id, []).append(msg)
    return partitions


class EventBatchConsumer:
    """
    Long-running worker over the event ingest list.

    The buffer is only touched under self._lock: appends, and the
    swap-and-clear at the start of a flush. Writing the partitions happens
    outside the lock on the swapped-out batch.

    Args:
        queue: Event queue (dequeue + dead-letter)
        writer: Columnar writer for single-tenant batches
        metering: Optional usage sink, called best-effort
        batch_size: Flush when the buffer reaches this many messages
        flush_interval: Flush when this many seconds passed since the last flush
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        queue: EventQueue,
        writer: EventParquetWriter,
        metering: Optional[MeteringService] = None,
        batch_size: int = None,
        flush_interval: float = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.queue = queue
        self.writer = writer
        self.metering = metering
        self.batch_size = batch_size or settings.EVENT_BATCH_SIZE
        self.flush_interval = flush_interval or settings.EVENT_FLUSH_INTERVAL_SECONDS
        self.clock = clock

        self._lock = asyncio.Lock()
        self._buffer: List[EventMessage] = []
        self._last_flush = clock()
        self.error_backoff = DEQUEUE_ERROR_BACKOFF_SECONDS
        self._stopping = asyncio.Event()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    async def add(self, msg: EventMessage) -> bool:
        """Buffer a message; return True when the size threshold is reached"""
        async with self._lock:
            self._buffer.append(msg)
            return len(self._buffer) >= self.batch_size

    async def flush_due(self) -> bool:
        async with self._lock:
            elapsed = self.clock() - self._last_flush >= self.flush_interval
            if elapsed and not self._buffer:
                # Idle interval: restart the timer so the next event waits a full interval
                self._last_flush = self.clock()
                return False
            return elapsed

    async def poll_once(self) -> None:
        """One iteration of the worker loop: time check, dequeue, size check"""
        if await self.flush_due():
            await self.flush()

        try:
            msg = await self.queue.dequeue()
        except QueueError as e:
            logger.error(f"Event dequeue error: {e}")
            await asyncio.sleep(self.error_backoff)
            return

        if msg is not None and await self.add(msg):
            await self.flush()
        elif await self.flush_due():
            await self.flush()

    async def flush(self) -> int:
        """
        Swap out the buffer and write one file per tenant partition.

        A failing partition is dead-lettered message by message and does
        not affect the other partitions. Returns the number of messages
        taken from the buffer.
        """
        async with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer
            self._buffer = []
            self._last_flush = self.clock()

        for tenant_id, events in partition_by_tenant(batch).items():
            await self._flush_partition(tenant_id, events)

        return len(batch)

    async def _flush_partition(self, tenant_id: str, events: List[EventMessage]) -> None:
        start = time.perf_counter()

        try:
            result = await self.writer.write_batch(events)
        except IngestionException as e:
            logger.error(
                f"Write batch error tenant={tenant_id} count={len(events)}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            await self._dead_letter(events, str(e))
        except Exception as e:
            # Swapped-out batch: the DLQ is the only place these events can go
            logger.exception(f"Unexpected write batch error tenant={tenant_id} count={len(events)}: {e}")
            await self._dead_letter(events, f"{type(e).__name__}: {e}")
        else:
            logger.info(f"Flushed batch tenant={tenant_id} count={len(events)}")
            metrics.EVENTS_PROCESSED_TOTAL.inc(len(events))
            if self.metering is not None:
                await self.metering.record_events_best_effort(
                    tenant_id, len(events), result.size_bytes if result else 0
                )

        metrics.EVENTS_BATCH_SIZE.observe(len(events))
        metrics.EVENTS_BATCH_DURATION.observe(time.perf_counter() - start)

    async def _dead_letter(self, events: List[EventMessage], reason: str) -> None:
        metrics.EVENTS_FAILED_TOTAL.inc(len(events))
        for msg in events:
            try:
                await self.queue.enqueue_dlq(msg, reason)
            except QueueError as dlq_error:
                logger.error(f"Enqueue DLQ error event={msg.event_id}: {dlq_error}")

    def stop(self) -> None:
        """Ask the loop to exit after the current poll; the buffer is drained on exit"""
        self._stopping.set()

    async def run(self) -> None:
        logger.info(
            f"Event consumer started (batch_size={self.batch_size}, "
            f"flush_interval={self.flush_interval}s)"
        )
        try:
            while not self._stopping.is_set():
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.exception(f"Event consumer poll error: {e}")
                    await asyncio.sleep(self.error_backoff)
        finally:
            drained = await self.flush()
            logger.info(f"Event consumer stopped (drained {drained} buffered events)")
