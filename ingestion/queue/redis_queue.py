"""
Durable queue store on Redis: pending work list, TTL-keyed idempotency
markers and a dead-letter list.

Both pipelines share one contract:
- enqueue(msg): LPUSH onto the ingest list
- dequeue(): BRPOP with a bounded wait (None when nothing arrived)
- mark_processed(key): SET NX EX, the sole authority for "already handled"
- enqueue_dlq(msg, reason): LPUSH a DeadLetterEntry onto the dlq list

Keys are namespaced as {prefix}:{pipeline}:ingest, :dlq, :seen:{key}.
"""

from typing import Dict, Generic, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError as PydanticValidationError
import redis.asyncio as redis
from redis.exceptions import RedisError
import logging

from core.config import settings
from core.exceptions import QueueError, DuplicateEventError, UploadAlreadyProcessedError
from schemas.messages import EventMessage, UploadJobMessage, DeadLetterEntry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def create_redis_client(redis_url: Optional[str] = None) -> redis.Redis:
    """Create an asyncio Redis client (connects lazily on first command)"""
    return redis.from_url(redis_url or settings.REDIS_URL, decode_responses=True)


class RedisQueue(Generic[M]):
    """
    FIFO list + key-existence store with TTL.

    Producers LPUSH and consumers BRPOP, so items come out in arrival order
    and several consumer processes can compete for the same list.
    """

    message_model: Type[M]

    def __init__(
        self,
        client: redis.Redis,
        namespace: str,
        ttl_seconds: int = None,
        dequeue_timeout: int = None
    ):
        self.redis = client
        self.namespace = namespace
        self.ingest_key = f"{namespace}:ingest"
        self.dlq_key = f"{namespace}:dlq"
        self.seen_prefix = f"{namespace}:seen:"
        self.ttl_seconds = ttl_seconds or settings.IDEMPOTENCY_TTL_SECONDS
        self.dequeue_timeout = dequeue_timeout or settings.DEQUEUE_TIMEOUT_SECONDS

    async def enqueue(self, msg: M) -> None:
        """Serialize and push a message onto the ingest list"""
        try:
            await self.redis.lpush(self.ingest_key, msg.model_dump_json())
        except RedisError as e:
            raise QueueError(
                "Failed to enqueue message",
                context={"operation": "enqueue", "key": self.ingest_key},
                original_exception=e
            )

    async def dequeue(self) -> Optional[M]:
        """
        Blocking pop with bounded wait.

        Returns None when the wait elapsed without work. Payloads that cannot
        be decoded are moved to the dead-letter list instead of being returned.
        """
        try:
            result = await self.redis.brpop([self.ingest_key], timeout=self.dequeue_timeout)
        except RedisError as e:
            raise QueueError(
                "Failed to dequeue message",
                context={"operation": "dequeue", "key": self.ingest_key},
                original_exception=e
            )

        if result is None:
            return None

        _, raw = result
        try:
            return self.message_model.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error(f"Undecodable message on {self.ingest_key}, routing to DLQ: {e}")
            await self._push_dlq({"raw": raw}, f"decode error: {e}")
            return None

    async def is_marked(self, key: str) -> bool:
        """Check whether an idempotency marker exists"""
        try:
            return await self.redis.exists(self.seen_prefix + key) > 0
        except RedisError as e:
            raise QueueError(
                "Failed to check idempotency marker",
                context={"operation": "exists", "key": self.seen_prefix + key},
                original_exception=e
            )

    async def claim(self, key: str) -> bool:
        """
        Set the idempotency marker if absent.

        Returns True when this caller set the marker, False when it already
        existed (another request or delivery got there first).
        """
        try:
            ok = await self.redis.set(self.seen_prefix + key, "1", nx=True, ex=self.ttl_seconds)
        except RedisError as e:
            raise QueueError(
                "Failed to set idempotency marker",
                context={"operation": "set_nx", "key": self.seen_prefix + key},
                original_exception=e
            )
        return bool(ok)

    async def enqueue_dlq(self, msg: M, reason: str) -> None:
        """Append a failed message and its failure reason to the dead-letter list"""
        await self._push_dlq(msg.model_dump(mode="json"), reason)

    async def dlq_length(self) -> int:
        try:
            return await self.redis.llen(self.dlq_key)
        except RedisError as e:
            raise QueueError(
                "Failed to read DLQ length",
                context={"operation": "llen", "key": self.dlq_key},
                original_exception=e
            )

    async def _push_dlq(self, payload: Dict, reason: str) -> None:
        entry = DeadLetterEntry(message=payload, reason=reason)
        try:
            await self.redis.lpush(self.dlq_key, entry.model_dump_json())
        except RedisError as e:
            raise QueueError(
                "Failed to enqueue dead-letter entry",
                context={"operation": "enqueue_dlq", "key": self.dlq_key},
                original_exception=e
            )


class EventQueue(RedisQueue[EventMessage]):
    """Event pipeline queue with per-(tenant, event_id) dedup markers"""

    message_model = EventMessage

    def __init__(self, client: redis.Redis, prefix: str = None, **kwargs):
        prefix = prefix or settings.QUEUE_KEY_PREFIX
        super().__init__(client, namespace=f"{prefix}:events", **kwargs)
        self.counts_prefix = f"{prefix}:events:counts:"

    @staticmethod
    def event_key(tenant_id: str, event_id: str) -> str:
        return f"{tenant_id}:{event_id}"

    async def check_duplicate(self, tenant_id: str, event_id: str) -> bool:
        return await self.is_marked(self.event_key(tenant_id, event_id))

    async def mark_processed(self, tenant_id: str, event_id: str) -> None:
        """Set the dedup marker; raise DuplicateEventError if it was already set"""
        key = self.event_key(tenant_id, event_id)
        if not await self.claim(key):
            raise DuplicateEventError(
                "Event already processed",
                context={"tenant_id": tenant_id, "event_id": event_id}
            )

    async def increment_count(self, tenant_id: str, event_name: str) -> None:
        try:
            await self.redis.hincrby(self.counts_prefix + tenant_id, event_name, 1)
        except RedisError as e:
            raise QueueError(
                "Failed to increment event count",
                context={"operation": "hincrby", "key": self.counts_prefix + tenant_id},
                original_exception=e
            )

    async def get_counts(self, tenant_id: str) -> Dict[str, int]:
        try:
            raw = await self.redis.hgetall(self.counts_prefix + tenant_id)
        except RedisError as e:
            raise QueueError(
                "Failed to read event counts",
                context={"operation": "hgetall", "key": self.counts_prefix + tenant_id},
                original_exception=e
            )
        return {name: int(count) for name, count in raw.items()}


class UploadQueue(RedisQueue[UploadJobMessage]):
    """Upload conversion job queue with per-upload_id processing markers"""

    message_model = UploadJobMessage

    def __init__(self, client: redis.Redis, prefix: str = None, **kwargs):
        prefix = prefix or settings.QUEUE_KEY_PREFIX
        super().__init__(client, namespace=f"{prefix}:uploads", **kwargs)

    async def mark_processed(self, upload_id: str) -> None:
        """Claim a job; raise UploadAlreadyProcessedError on redelivery"""
        if not await self.claim(upload_id):
            raise UploadAlreadyProcessedError(
                "Upload already processed",
                context={"upload_id": upload_id}
            )
