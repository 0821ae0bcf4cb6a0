"""
Event ingestion service (synchronous request path)
"""

from typing import Any, Dict, Optional
from datetime import datetime, timezone
import json
import logging

from core import metrics
from core.exceptions import DuplicateEventError, QueueError
from ingestion.queue.redis_queue import EventQueue
from schemas.messages import EventMessage

logger = logging.getLogger(__name__)


class EventIngestionService:
    """
    Deduplicate by (tenant_id, event_id), marshal and enqueue.

    Order of operations:
    1. Check the idempotency marker (no side effect if already set)
    2. Set the marker with set-if-absent; losing the race is a duplicate
    3. LPUSH the message onto the ingest list

    The marker, not the queue, is the dedup authority. The caller does not
    wait for materialization.
    """

    def __init__(self, queue: EventQueue):
        self.queue = queue

    async def ingest(
        self,
        tenant_id: str,
        event_id: str,
        event_name: str,
        properties: Optional[Dict[str, Any]],
        event_time: datetime
    ) -> EventMessage:
        metrics.EVENTS_RECEIVED_TOTAL.inc()

        if await self.queue.check_duplicate(tenant_id, event_id):
            metrics.EVENTS_DUPLICATE_TOTAL.inc()
            raise DuplicateEventError(
                "Event already processed",
                context={"tenant_id": tenant_id, "event_id": event_id}
            )

        try:
            await self.queue.mark_processed(tenant_id, event_id)
        except DuplicateEventError:
            metrics.EVENTS_DUPLICATE_TOTAL.inc()
            raise

        msg = EventMessage(
            event_id=event_id,
            tenant_id=tenant_id,
            event_name=event_name,
            properties=json.dumps(properties) if properties else "{}",
            event_time=event_time,
            received_at=datetime.now(timezone.utc)
        )

        await self.queue.enqueue(msg)
        metrics.EVENTS_ENQUEUED_TOTAL.inc()

        try:
            await self.queue.increment_count(tenant_id, event_name)
        except QueueError as e:
            logger.warning(f"Failed to increment event count for tenant {tenant_id}: {e}")

        logger.debug(f"Accepted event tenant={tenant_id} event_id={event_id} name={event_name}")
        return msg

    async def summary(self, tenant_id: str) -> Dict[str, int]:
        """Accepted-event counts by event name for a tenant"""
        return await self.queue.get_counts(tenant_id)
