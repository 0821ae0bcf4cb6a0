"""
Unit tests for the S3 object store wrapper (boto3 clients mocked)
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from botocore.exceptions import ClientError, EndpointConnectionError

from core.exceptions import ObjectStoreError
from ingestion.storage.object_store import ObjectStore


def client_error(code="500", operation="PutObject"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def store(s3_client):
    return ObjectStore(client=s3_client, presign_client=s3_client, bucket="test-bucket")


class TestObjectStore:

    @pytest.mark.asyncio
    async def test_put_parquet(self, store, s3_client):
        await store.put_parquet("events/t1/x.parquet", b"PAR1data")

        s3_client.put_object.assert_called_once_with(
            Bucket="test-bucket",
            Key="events/t1/x.parquet",
            Body=b"PAR1data",
            ContentType="application/octet-stream",
        )

    @pytest.mark.asyncio
    async def test_put_failure_wraps_error(self, store, s3_client):
        s3_client.put_object.side_effect = client_error()

        with pytest.raises(ObjectStoreError) as exc_info:
            await store.put_object("k", b"x")

        assert exc_info.value.context["operation"] == "put"
        assert isinstance(exc_info.value.original_exception, ClientError)

    @pytest.mark.asyncio
    async def test_download_to_file(self, store, s3_client, tmp_path):
        dest = str(tmp_path / "in.csv")

        await store.download_to_file("uploads/t1/f.csv", dest)

        s3_client.download_file.assert_called_once_with("test-bucket", "uploads/t1/f.csv", dest)

    @pytest.mark.asyncio
    async def test_download_failure_wraps_error(self, store, s3_client, tmp_path):
        s3_client.download_file.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

        with pytest.raises(ObjectStoreError):
            await store.download_to_file("k", str(tmp_path / "x"))

    def test_presigned_put_url(self, s3_client):
        public = MagicMock()
        public.generate_presigned_url.return_value = "https://public.example/test-bucket/k?sig"
        store = ObjectStore(client=s3_client, presign_client=public, bucket="test-bucket")
        before = datetime.now(timezone.utc)

        url, expires_at = store.generate_presigned_put_url("k", "text/csv", 900)

        assert url == "https://public.example/test-bucket/k?sig"
        public.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={"Bucket": "test-bucket", "Key": "k", "ContentType": "text/csv"},
            ExpiresIn=900,
        )
        s3_client.generate_presigned_url.assert_not_called()
        assert before + timedelta(seconds=899) <= expires_at <= datetime.now(timezone.utc) + timedelta(seconds=900)

    def test_presigned_put_url_without_content_type(self, store, s3_client):
        s3_client.generate_presigned_url.return_value = "https://x"

        store.generate_presigned_put_url("k", "", 60)

        assert s3_client.generate_presigned_url.call_args.kwargs["Params"] == {"Bucket": "test-bucket", "Key": "k"}

    @pytest.mark.asyncio
    async def test_ensure_bucket_existing(self, store, s3_client):
        await store.ensure_bucket()

        s3_client.head_bucket.assert_called_once_with(Bucket="test-bucket")
        s3_client.create_bucket.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_bucket_creates_missing(self, store, s3_client):
        s3_client.head_bucket.side_effect = client_error("404", "HeadBucket")

        await store.ensure_bucket()

        s3_client.create_bucket.assert_called_once_with(Bucket="test-bucket")

    @pytest.mark.asyncio
    async def test_ensure_bucket_unreachable(self, store, s3_client):
        s3_client.head_bucket.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

        with pytest.raises(ObjectStoreError):
            await store.ensure_bucket()
        s3_client.create_bucket.assert_not_called()
