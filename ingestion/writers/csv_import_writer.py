"""
CSV to Parquet conversion for uploaded files, plus catalog registration.
"""

from typing import Callable, Mapping, Optional, Protocol
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from sqlalchemy.ext.asyncio import AsyncSession
import asyncio
import json
import os
import tempfile
import logging

import duckdb

from core.config import settings
from core.exceptions import ConversionError
from ingestion.repositories.dataset_repository import DatasetRepository
from ingestion.storage.object_store import ObjectStore
from models.base import DatasetSourceType
from schemas.messages import UploadJobFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    row_count: int
    schema_json: str
    output_key: str
    size_bytes: int = 0


@dataclass(frozen=True)
class ConvertedTable:
    row_count: int
    schema_json: str
    data: bytes


class FileConverter(Protocol):
    async def process_file(self, tenant_id: str, file: UploadJobFile) -> ImportResult:
        ...


def dataset_name(file_name: str) -> str:
    """Catalog name for an uploaded file: the filename without its extension"""
    return os.path.splitext(os.path.basename(file_name))[0]


def import_object_key(tenant_id: str, file_id: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"imports/{tenant_id}/dt={now.strftime('%Y-%m-%d')}/{file_id}.parquet"


def csv_to_parquet(csv_path: str, parquet_path: str) -> ConvertedTable:
    """
    Load a CSV into in-memory DuckDB, describe it, count it and export it.

    Blocking; run through asyncio.to_thread.
    """
    con = duckdb.connect()
    try:
        con.execute(
            f"CREATE TABLE imported AS SELECT * FROM read_csv_auto('{_quote_path(csv_path)}')"
        )

        # DESCRIBE -> column_name, column_type, null, key, default, extra
        columns = [
            {"column_name": row[0], "column_type": row[1]}
            for row in con.execute("DESCRIBE imported").fetchall()
        ]
        row_count = con.execute("SELECT COUNT(*) FROM imported").fetchone()[0]

        con.execute(f"COPY imported TO '{_quote_path(parquet_path)}' (FORMAT PARQUET)")
    finally:
        con.close()

    with open(parquet_path, "rb") as f:
        data = f.read()

    return ConvertedTable(row_count=int(row_count), schema_json=json.dumps(columns), data=data)


def _quote_path(path: str) -> str:
    return path.replace("'", "''")


class CSVImportWriter:
    """
    Converts one uploaded CSV into a catalogued Parquet dataset.

    Steps: download to scratch -> DuckDB read -> schema + row count ->
    Parquet export -> PUT under imports/ -> upsert Dataset (tenant, name).
    """

    def __init__(
        self,
        object_store: ObjectStore,
        session_factory: Callable[[], AsyncSession],
        scratch_dir: Optional[str] = None
    ):
        self.object_store = object_store
        self.session_factory = session_factory
        self.scratch_dir = scratch_dir or settings.SCRATCH_DIR

    async def process_file(self, tenant_id: str, file: UploadJobFile) -> ImportResult:
        try:
            scratch = tempfile.TemporaryDirectory(
                prefix="lakehouse-csv-import-", dir=self.scratch_dir, ignore_cleanup_errors=True
            )
        except OSError as e:
            raise ConversionError(
                "Failed to create scratch directory",
                context={"tenant_id": tenant_id, "file_name": file.file_name, "scratch_dir": self.scratch_dir},
                original_exception=e
            )

        with scratch as tmp_dir:
            csv_path = os.path.join(tmp_dir, "input.csv")
            parquet_path = os.path.join(tmp_dir, "output.parquet")

            await self.object_store.download_to_file(file.object_key, csv_path)

            try:
                converted = await asyncio.to_thread(csv_to_parquet, csv_path, parquet_path)
            except (duckdb.Error, OSError) as e:
                raise ConversionError(
                    "Failed to convert CSV to Parquet",
                    context={"tenant_id": tenant_id, "file_name": file.file_name, "file_id": file.file_id},
                    original_exception=e
                )

        now = datetime.now(timezone.utc)
        output_key = import_object_key(tenant_id, file.file_id, now)
        await self.object_store.put_parquet(output_key, converted.data)

        async with self.session_factory() as session:
            await DatasetRepository(session).upsert(
                tenant_id=tenant_id,
                name=dataset_name(file.file_name),
                source_type=DatasetSourceType.IMPORT,
                storage_path=output_key,
                schema_json=converted.schema_json,
                row_count=converted.row_count,
                last_updated_at=now
            )

        logger.info(
            f"Imported {file.file_name} for tenant {tenant_id}: "
            f"{converted.row_count} rows -> {output_key}"
        )
        return ImportResult(
            row_count=converted.row_count,
            schema_json=converted.schema_json,
            output_key=output_key,
            size_bytes=len(converted.data)
        )


def build_converter_registry(csv_writer: CSVImportWriter) -> Mapping[str, FileConverter]:
    """
    Read-only extension -> converter mapping, built once at startup.

    Only CSV is materialized; other allow-listed upload extensions have no
    converter and are skipped by the upload consumer.
    """
    return MappingProxyType({".csv": csv_writer})
