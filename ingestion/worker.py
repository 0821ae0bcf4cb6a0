"""
Worker process: runs the event and/or upload consumers until stopped.
"""

from typing import List
import asyncio
import signal
import logging

from core.resources import Resources, create_resources
from ingestion.consumers.event_consumer import EventBatchConsumer
from ingestion.consumers.upload_consumer import UploadConversionConsumer

logger = logging.getLogger(__name__)

MODES = ("events", "uploads", "all")


def build_consumers(resources: Resources, mode: str = "all") -> List:
    if mode not in MODES:
        raise ValueError(f"Unknown worker mode {mode!r}, expected one of {MODES}")

    consumers = []
    if mode in ("events", "all"):
        consumers.append(EventBatchConsumer(
            resources.event_queue,
            resources.event_writer,
            metering=resources.metering
        ))
    if mode in ("uploads", "all"):
        consumers.append(UploadConversionConsumer(
            resources.upload_queue,
            resources.converters,
            metering=resources.metering
        ))
    return consumers


async def run_consumers(consumers: List) -> None:
    """
    Run consumers concurrently; SIGINT/SIGTERM ask each one to stop.

    Consumers exit after their current poll, so the event consumer drains
    its buffer and in-flight writes finish instead of being cancelled.
    """
    loop = asyncio.get_running_loop()

    def request_stop():
        logger.info("Shutdown signal received, stopping consumers")
        for consumer in consumers:
            consumer.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(request_stop))

    await asyncio.gather(*(consumer.run() for consumer in consumers))


async def run_worker(mode: str = "all") -> None:
    resources = create_resources()
    try:
        await resources.object_store.ensure_bucket()
        consumers = build_consumers(resources, mode)
        logger.info(f"Worker started (mode={mode}, consumers={len(consumers)})")
        await run_consumers(consumers)
    finally:
        await resources.aclose()
        logger.info("Worker stopped")
