"""
API endpoint tests
"""

import uuid
import pytest
from datetime import datetime, timezone
from types import MappingProxyType
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from api.main import app
from core.resources import Resources
from ingestion.metering import MeteringService
from ingestion.queue.redis_queue import EventQueue, UploadQueue
from models.base import DatasetSourceType
from models.dataset import Dataset

TENANT = {"X-Tenant-ID": "t1"}


@pytest.fixture
def resources(sqlite_url, fake_redis, mock_object_store):
    """Resources wired to a file-backed SQLite db, in-memory Redis and a mocked object store"""
    engine = create_async_engine(sqlite_url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return Resources(
        engine=engine,
        session_factory=session_factory,
        redis=fake_redis,
        event_queue=EventQueue(fake_redis, prefix="test"),
        upload_queue=UploadQueue(fake_redis, prefix="test"),
        object_store=mock_object_store,
        metering=MeteringService(session_factory),
        event_writer=MagicMock(),
        converters=MappingProxyType({}),
    )


@pytest.fixture
def client(resources):
    """Create test client with pre-built resources"""
    app.state.resources = resources

    with TestClient(app) as test_client:
        yield test_client

    app.state.resources = None


@pytest.fixture
def seed_datasets(sqlite_url):
    """Insert catalog rows through a synchronous engine on the same file"""
    engine = create_sync_engine(sqlite_url.replace("+aiosqlite", ""))
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    rows = []
    with Session(engine) as session:
        for tenant_id, name, source_type in [
            ("t1", "orders", DatasetSourceType.IMPORT),
            ("t1", "customers", DatasetSourceType.IMPORT),
            ("t1", "page_views", DatasetSourceType.TRACKER),
            ("t2", "orders", DatasetSourceType.IMPORT),
        ]:
            dataset = Dataset(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                name=name,
                source_type=source_type,
                schema_json='[{"column_name": "id", "column_type": "BIGINT"}]',
                row_count=3,
                storage_path=f"imports/{tenant_id}/dt=2024-01-15/{name}.parquet",
                last_updated_at=now
            )
            session.add(dataset)
            rows.append(dataset)
        session.commit()
        ids = {(d.tenant_id, d.name): d.id for d in rows}
    engine.dispose()
    return ids


def event_body(event_id="e1", event_name="page_view"):
    return {
        "event_id": event_id,
        "event_name": event_name,
        "properties": {"path": "/pricing"},
        "event_time": "2024-01-15T10:00:00Z"
    }


# ============================================================================
# Events
# ============================================================================

def test_ingest_event_accepted(client, fake_redis):
    response = client.post("/events", json=event_body(), headers=TENANT)

    assert response.status_code == 202
    assert response.json() == {"event_id": "e1", "status": "accepted"}
    assert len(fake_redis.lists["test:events:ingest"]) == 1


def test_ingest_duplicate_event_conflicts(client):
    assert client.post("/events", json=event_body("e1"), headers=TENANT).status_code == 202

    response = client.post("/events", json=event_body("e1"), headers=TENANT)

    assert response.status_code == 409
    assert response.json()["detail"]["type"] == "DuplicateEventError"
    assert client.post("/events", json=event_body("e2"), headers=TENANT).status_code == 202


def test_ingest_event_validation(client):
    missing_name = {k: v for k, v in event_body().items() if k != "event_name"}
    assert client.post("/events", json=missing_name, headers=TENANT).status_code == 400

    blank_id = event_body(event_id="   ")
    assert client.post("/events", json=blank_id, headers=TENANT).status_code == 400

    bad_time = dict(event_body(), event_time="yesterday")
    assert client.post("/events", json=bad_time, headers=TENANT).status_code == 400


def test_tenant_header_required(client):
    assert client.post("/events", json=event_body()).status_code == 400
    assert client.post("/events", json=event_body(), headers={"X-Tenant-ID": " "}).status_code == 400


def test_queue_outage_is_service_unavailable(client, fake_redis):
    fake_redis.lpush = AsyncMock(side_effect=RedisConnectionError("connection refused"))

    response = client.post("/events", json=event_body(), headers=TENANT)

    assert response.status_code == 503
    assert response.json() == {"error": "Failed to enqueue message", "detail": {"type": "QueueError"}}


def test_validation_error_body(client):
    response = client.post("/events", json={}, headers=TENANT)

    body = response.json()
    assert response.status_code == 400
    assert body["error"] == "Invalid request"
    assert body["detail"]["errors"]


def test_events_summary(client):
    client.post("/events", json=event_body("e1", "signup"), headers=TENANT)
    client.post("/events", json=event_body("e2", "signup"), headers=TENANT)
    client.post("/events", json=event_body("e3", "login"), headers=TENANT)

    response = client.get("/events/summary", headers=TENANT)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["counts"] == [
        {"event_name": "signup", "count": 2},
        {"event_name": "login", "count": 1},
    ]
    assert client.get("/events/summary", headers={"X-Tenant-ID": "t2"}).json()["total"] == 0


# ============================================================================
# Uploads
# ============================================================================

def presign(client, files=None):
    files = files or [{"filename": "data.csv", "content_type": "text/csv", "size_bytes": 1024}]
    return client.post("/uploads/presign", json={"files": files}, headers=TENANT)


def test_presign_and_complete_scenario(client, fake_redis):
    response = presign(client)

    assert response.status_code == 201
    data = response.json()
    assert data["upload_id"]
    assert len(data["files"]) == 1
    assert data["files"][0]["presigned_url"]
    assert data["files"][0]["filename"] == "data.csv"
    assert data["files"][0]["object_key"].startswith("uploads/t1/")

    complete = client.post(f"/uploads/{data['upload_id']}/complete", headers=TENANT)

    assert complete.status_code == 200
    body = complete.json()
    assert body["id"] == data["upload_id"]
    assert body["tenant_id"] == "t1"
    assert body["status"] == "uploaded"
    assert [f["id"] for f in body["files"]] == [data["files"][0]["file_id"]]
    assert len(fake_redis.lists["test:uploads:ingest"]) == 1

    again = client.post(f"/uploads/{data['upload_id']}/complete", headers=TENANT)

    assert again.status_code == 409
    assert len(fake_redis.lists["test:uploads:ingest"]) == 1


def test_complete_unknown_upload(client):
    response = client.post("/uploads/nope/complete", headers=TENANT)

    assert response.status_code == 404


def test_complete_other_tenants_upload(client):
    upload_id = presign(client).json()["upload_id"]

    response = client.post(f"/uploads/{upload_id}/complete", headers={"X-Tenant-ID": "t2"})

    assert response.status_code == 404


@pytest.mark.parametrize("files", [
    [{"filename": "setup.exe", "content_type": "", "size_bytes": 10}],
    [{"filename": "big.csv", "content_type": "text/csv", "size_bytes": 100 * 1024 * 1024 + 1}],
    [{"filename": "empty.csv", "content_type": "text/csv", "size_bytes": 0}],
    [{"filename": f"f{i}.csv", "content_type": "text/csv", "size_bytes": 1} for i in range(11)],
    [],
])
def test_presign_validation_errors(client, files):
    response = presign(client, files) if files else client.post(
        "/uploads/presign", json={"files": []}, headers=TENANT
    )

    assert response.status_code == 400


# ============================================================================
# Datasets
# ============================================================================

def test_list_datasets(client, seed_datasets):
    response = client.get("/datasets", headers=TENANT)

    assert response.status_code == 200
    data = response.json()
    assert [d["name"] for d in data["items"]] == ["customers", "orders", "page_views"]
    assert data["limit"] == 50
    assert data["offset"] == 0


def test_list_datasets_filters_and_clamp(client, seed_datasets):
    by_type = client.get("/datasets?source_type=tracker", headers=TENANT).json()
    assert [d["name"] for d in by_type["items"]] == ["page_views"]

    by_query = client.get("/datasets?q=ord", headers=TENANT).json()
    assert [d["name"] for d in by_query["items"]] == ["orders"]

    clamped = client.get("/datasets?limit=500", headers=TENANT).json()
    assert clamped["limit"] == 100


def test_get_dataset(client, seed_datasets):
    dataset_id = seed_datasets[("t1", "orders")]

    response = client.get(f"/datasets/{dataset_id}", headers=TENANT)

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "orders"
    assert data["row_count"] == 3
    assert data["source_type"] == "import"


def test_get_dataset_not_found(client, seed_datasets):
    other_tenant_id = seed_datasets[("t2", "orders")]

    assert client.get(f"/datasets/{other_tenant_id}", headers=TENANT).status_code == 404
    assert client.get("/datasets/missing", headers=TENANT).status_code == 404


# ============================================================================
# Health / metrics / middleware
# ============================================================================

def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["queue_connected"] is True


def test_health_degraded_without_queue(client, fake_redis):
    fake_redis.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["queue_connected"] is False


def test_metrics_endpoint(client):
    client.post("/events", json=event_body(), headers=TENANT)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "events_received_total" in response.text
    assert "uploads_processed_total" in response.text


def test_request_id_headers(client):
    response = client.get("/", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-API-Latency-ms" in response.headers
    assert client.get("/").headers["X-Request-ID"]
