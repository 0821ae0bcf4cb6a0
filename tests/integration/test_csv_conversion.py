"""
Integration tests: CSV upload -> DuckDB conversion -> Parquet + catalog
"""

import json
import re
import shutil
import duckdb
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import ConversionError
from ingestion.consumers.upload_consumer import UploadConversionConsumer, PROCESSED, DUPLICATE
from ingestion.repositories.dataset_repository import DatasetRepository
from ingestion.services.upload_service import UploadService, UploadFileInput
from ingestion.writers.csv_import_writer import CSVImportWriter, build_converter_registry, dataset_name
from ingestion.metering import MeteringService
from ingestion.repositories.usage_repository import UsageRepository
from models.base import DatasetSourceType
from schemas.messages import UploadJobFile


@pytest.fixture
def object_store_with_csv(mock_object_store, sample_csv_path):
    """Object store whose downloads return the sample CSV"""

    async def download(object_key, dest_path):
        shutil.copyfile(sample_csv_path, dest_path)

    mock_object_store.download_to_file = AsyncMock(side_effect=download)
    return mock_object_store


def upload_file(name="orders.csv", file_id="f-123"):
    return UploadJobFile(
        file_id=file_id,
        file_name=name,
        object_key=f"uploads/t1/2024-01-15/{file_id}.csv",
        content_type="text/csv",
        size_bytes=64
    )


class TestCSVImportWriter:

    @pytest.mark.asyncio
    async def test_three_row_csv_becomes_dataset(self, object_store_with_csv, session_factory, db_session, tmp_path):
        writer = CSVImportWriter(object_store_with_csv, session_factory, scratch_dir=str(tmp_path))

        result = await writer.process_file("t1", upload_file())

        assert result.row_count == 3
        assert re.fullmatch(r"imports/t1/dt=\d{4}-\d{2}-\d{2}/f-123\.parquet", result.output_key)

        key, data = object_store_with_csv.put_parquet.await_args.args
        assert key == result.output_key
        assert data.startswith(b"PAR1")

        dataset = await DatasetRepository(db_session).find_by_name("t1", "orders")
        assert dataset.row_count == 3
        assert dataset.storage_path == result.output_key
        assert dataset.source_type == DatasetSourceType.IMPORT
        schema = json.loads(dataset.schema_json)
        assert [c["column_name"] for c in schema] == ["id", "name", "amount"]
        assert schema[0]["column_type"] == "BIGINT"
        assert schema[1]["column_type"] == "VARCHAR"
        assert schema[2]["column_type"] == "DOUBLE"

    @pytest.mark.asyncio
    async def test_parquet_output_matches_csv(self, object_store_with_csv, session_factory, tmp_path):
        writer = CSVImportWriter(object_store_with_csv, session_factory, scratch_dir=str(tmp_path))

        await writer.process_file("t1", upload_file())

        _, data = object_store_with_csv.put_parquet.await_args.args
        path = tmp_path / "check.parquet"
        path.write_bytes(data)
        con = duckdb.connect()
        rows = con.execute(f"SELECT id, name, amount FROM read_parquet('{path}') ORDER BY id").fetchall()
        con.close()
        assert rows == [(1, "alpha", 10.5), (2, "beta", 20.25), (3, "gamma", 30.0)]

    @pytest.mark.asyncio
    async def test_reimport_same_name_overwrites(self, object_store_with_csv, session_factory, db_session, tmp_path):
        writer = CSVImportWriter(object_store_with_csv, session_factory, scratch_dir=str(tmp_path))

        await writer.process_file("t1", upload_file(file_id="f-1"))
        second = await writer.process_file("t1", upload_file(file_id="f-2"))

        datasets = await DatasetRepository(db_session).list_by_tenant("t1")
        assert len(datasets) == 1
        assert datasets[0].storage_path == second.output_key

    @pytest.mark.asyncio
    async def test_missing_scratch_file_raises_conversion_error(self, mock_object_store, session_factory, tmp_path):
        # download_to_file is a no-op mock, so DuckDB finds no input file
        writer = CSVImportWriter(mock_object_store, session_factory, scratch_dir=str(tmp_path))

        with pytest.raises(ConversionError):
            await writer.process_file("t1", upload_file())
        mock_object_store.put_parquet.assert_not_called()

    def test_dataset_name(self):
        assert dataset_name("orders.csv") == "orders"
        assert dataset_name("sales.2024.csv") == "sales.2024"
        assert dataset_name("dir/nested.csv") == "nested"


class TestUploadPipeline:

    @pytest.mark.asyncio
    async def test_presign_complete_convert(
        self, object_store_with_csv, session_factory, db_session, upload_queue, tmp_path
    ):
        service = UploadService(db_session, object_store_with_csv, upload_queue)
        metering = MeteringService(session_factory)
        converters = build_converter_registry(
            CSVImportWriter(object_store_with_csv, session_factory, scratch_dir=str(tmp_path))
        )
        consumer = UploadConversionConsumer(upload_queue, converters, metering=metering)

        presign = await service.create_presign("t1", [
            UploadFileInput(filename="orders.csv", content_type="text/csv", size_bytes=64),
            UploadFileInput(filename="notes.txt", content_type="text/plain", size_bytes=10),
        ])
        await service.complete("t1", presign.upload_id)

        # At-least-once delivery: the same job arrives twice
        job = await upload_queue.dequeue()
        await upload_queue.enqueue(job)

        assert await consumer.process_message(job) == PROCESSED
        assert await consumer.poll_once() == DUPLICATE

        datasets = await DatasetRepository(db_session).list_by_tenant("t1")
        assert [d.name for d in datasets] == ["orders"]
        assert datasets[0].row_count == 3
        assert object_store_with_csv.put_parquet.await_count == 1

        daily = await UsageRepository(db_session).find_daily("t1")
        assert daily.rows_count == 3
        assert daily.storage_bytes == 74
        assert daily.uploads_count == 1

    def test_registry_is_read_only(self, mock_object_store):
        registry = build_converter_registry(CSVImportWriter(mock_object_store, MagicMock()))

        assert set(registry) == {".csv"}
        with pytest.raises(TypeError):
            registry[".json"] = object()
