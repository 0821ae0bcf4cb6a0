"""
Upload conversion consumer: claims each job once, converts its files and
dead-letters the job if any file fails.
"""

from typing import Mapping, Optional
import asyncio
import time
import logging

from core import metrics
from core.exceptions import IngestionException, QueueError, UploadAlreadyProcessedError
from ingestion.metering import MeteringService
from ingestion.queue.redis_queue import UploadQueue
from ingestion.services.upload_service import file_extension
from ingestion.writers.csv_import_writer import FileConverter
from schemas.messages import UploadJobMessage

logger = logging.getLogger(__name__)

PROCESSED = "processed"
DUPLICATE = "duplicate"
FAILED = "failed"
DEQUEUE_ERROR_BACKOFF_SECONDS = 1.0


class UploadConversionConsumer:
    """
    Long-running worker over the upload job list.

    The upload_id claim (SET NX EX) is the exactly-once-effect boundary:
    a redelivered job finds the marker and is dropped without converting.
    Files without a registered converter are skipped, not failed.
    """

    def __init__(
        self,
        queue: UploadQueue,
        converters: Mapping[str, FileConverter],
        metering: Optional[MeteringService] = None
    ):
        self.queue = queue
        self.converters = converters
        self.metering = metering
        self.error_backoff = DEQUEUE_ERROR_BACKOFF_SECONDS
        self._stopping = asyncio.Event()

    async def process_message(self, msg: UploadJobMessage) -> str:
        """
        Process one job.

        Returns:
            "processed", "duplicate" or "failed"
        """
        start = time.perf_counter()

        try:
            await self.queue.mark_processed(msg.upload_id)
        except UploadAlreadyProcessedError:
            logger.info(f"CSV import: skipping duplicate upload_id={msg.upload_id}")
            metrics.UPLOADS_DUPLICATE_TOTAL.inc()
            return DUPLICATE
        except QueueError as e:
            logger.error(
                f"CSV import: mark processed error upload_id={msg.upload_id}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            await self._enqueue_dlq(msg, str(e))
            return FAILED

        total_rows = 0
        files_converted = 0
        last_error = None

        for file in msg.files:
            converter = self.converters.get(file_extension(file.file_name))
            if converter is None:
                logger.info(f"CSV import: skipping file={file.file_name} upload_id={msg.upload_id}")
                continue

            try:
                result = await converter.process_file(msg.tenant_id, file)
            except IngestionException as e:
                logger.error(
                    f"CSV import: process file error file={file.file_name} upload_id={msg.upload_id}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                last_error = e
                continue
            except Exception as e:
                # Claimed job: every failure must end in the DLQ
                logger.exception(f"CSV import: unexpected error file={file.file_name} upload_id={msg.upload_id}: {e}")
                last_error = e
                continue

            files_converted += 1
            total_rows += result.row_count
            logger.info(
                f"CSV import: converted file={file.file_name} rows={result.row_count} "
                f"output={result.output_key} upload_id={msg.upload_id}"
            )

        if last_error is not None:
            outcome = FAILED
            metrics.UPLOADS_FAILED_TOTAL.inc()
            await self._enqueue_dlq(msg, str(last_error))
        else:
            outcome = PROCESSED
            metrics.UPLOADS_PROCESSED_TOTAL.inc()
            if self.metering is not None:
                total_bytes = sum(f.size_bytes for f in msg.files)
                await self.metering.record_upload_best_effort(msg.tenant_id, total_rows, total_bytes)
                await self.metering.record_upload_count_best_effort(msg.tenant_id)

        metrics.UPLOADS_FILES_CONVERTED_TOTAL.inc(files_converted)
        metrics.UPLOADS_ROWS_TOTAL.inc(total_rows)
        metrics.UPLOADS_DURATION.observe(time.perf_counter() - start)
        return outcome

    async def _enqueue_dlq(self, msg: UploadJobMessage, reason: str) -> None:
        try:
            await self.queue.enqueue_dlq(msg, reason)
        except QueueError as e:
            logger.error(f"CSV import: enqueue DLQ error upload_id={msg.upload_id}: {e}")

    async def poll_once(self) -> Optional[str]:
        try:
            msg = await self.queue.dequeue()
        except QueueError as e:
            logger.error(f"Upload dequeue error: {e}")
            await asyncio.sleep(self.error_backoff)
            return None
        if msg is None:
            return None
        return await self.process_message(msg)

    def stop(self) -> None:
        self._stopping.set()

    async def run(self) -> None:
        logger.info("Upload consumer started")
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception(f"Upload consumer poll error: {e}")
                await asyncio.sleep(self.error_backoff)
        logger.info("Upload consumer stopped")
