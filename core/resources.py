"""
Process-wide collaborators, built once at startup and passed explicitly.

Nothing here connects eagerly: the SQLAlchemy engine, the Redis client and
the boto3 clients all open connections on first use.
"""

from dataclasses import dataclass
from typing import Mapping, Optional
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
import redis.asyncio as redis
import logging

from core.config import Settings, settings as default_settings
from core.database import create_engine, create_session_maker
from ingestion.metering import MeteringService
from ingestion.queue.redis_queue import EventQueue, UploadQueue, create_redis_client
from ingestion.storage.object_store import ObjectStore
from ingestion.writers.csv_import_writer import CSVImportWriter, FileConverter, build_converter_registry
from ingestion.writers.parquet_writer import EventParquetWriter

logger = logging.getLogger(__name__)


@dataclass
class Resources:
    engine: AsyncEngine
    session_factory: async_sessionmaker
    redis: redis.Redis
    event_queue: EventQueue
    upload_queue: UploadQueue
    object_store: ObjectStore
    metering: MeteringService
    event_writer: EventParquetWriter
    converters: Mapping[str, FileConverter]

    async def aclose(self) -> None:
        await self.redis.aclose()
        await self.engine.dispose()
        logger.info("Resources closed")


def create_resources(settings: Optional[Settings] = None) -> Resources:
    settings = settings or default_settings

    engine = create_engine(settings.DATABASE_URL)
    session_factory = create_session_maker(engine)
    redis_client = create_redis_client(settings.REDIS_URL)
    object_store = ObjectStore(bucket=settings.S3_BUCKET)

    queue_kwargs = {
        "prefix": settings.QUEUE_KEY_PREFIX,
        "ttl_seconds": settings.IDEMPOTENCY_TTL_SECONDS,
        "dequeue_timeout": settings.DEQUEUE_TIMEOUT_SECONDS,
    }

    return Resources(
        engine=engine,
        session_factory=session_factory,
        redis=redis_client,
        event_queue=EventQueue(redis_client, **queue_kwargs),
        upload_queue=UploadQueue(redis_client, **queue_kwargs),
        object_store=object_store,
        metering=MeteringService(session_factory),
        event_writer=EventParquetWriter(object_store, scratch_dir=settings.SCRATCH_DIR),
        converters=build_converter_registry(
            CSVImportWriter(object_store, session_factory, scratch_dir=settings.SCRATCH_DIR)
        ),
    )
