"""
S3-compatible object store client (MinIO in development).

Wraps the blocking boto3 client in asyncio.to_thread so the consumers and
request handlers can await uploads/downloads. Presigned URLs are generated
by a second client bound to the public endpoint, so the signature matches
the host the browser actually talks to.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from core.config import settings
from core.exceptions import ObjectStoreError

logger = logging.getLogger(__name__)

PARQUET_CONTENT_TYPE = "application/octet-stream"


def _make_client(endpoint_url: Optional[str]):
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
        config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class ObjectStore:
    """
    Put/get of opaque byte blobs by key.

    Attributes:
        bucket: Target bucket for raw uploads and columnar outputs
    """

    def __init__(self, client=None, presign_client=None, bucket: str = None):
        self.client = client or _make_client(settings.S3_ENDPOINT_URL)
        if presign_client is None:
            public = settings.S3_PUBLIC_ENDPOINT_URL
            presign_client = _make_client(public) if public else self.client
        self.presign_client = presign_client
        self.bucket = bucket or settings.S3_BUCKET

    async def put_object(self, object_key: str, data: bytes, content_type: str = PARQUET_CONTENT_TYPE) -> None:
        """Upload bytes in a single PUT"""
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(
                "Failed to put object",
                context={"operation": "put", "object_key": object_key, "bucket": self.bucket},
                original_exception=e
            )
        logger.debug(f"Put {len(data)} bytes to s3://{self.bucket}/{object_key}")

    async def put_parquet(self, object_key: str, data: bytes) -> None:
        await self.put_object(object_key, data, PARQUET_CONTENT_TYPE)

    async def download_to_file(self, object_key: str, dest_path: str) -> None:
        """Download an object to a local path; local disk errors count as store errors"""
        try:
            await asyncio.to_thread(self.client.download_file, self.bucket, object_key, dest_path)
        except (BotoCoreError, ClientError, OSError) as e:
            raise ObjectStoreError(
                "Failed to download object",
                context={"operation": "download", "object_key": object_key, "bucket": self.bucket},
                original_exception=e
            )

    def generate_presigned_put_url(
        self,
        object_key: str,
        content_type: str,
        expiry_seconds: int
    ) -> Tuple[str, datetime]:
        """
        Create a time-boxed write URL for direct client upload.

        Returns:
            (url, expires_at)
        """
        params = {"Bucket": self.bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        try:
            url = self.presign_client.generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=expiry_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(
                "Failed to generate presigned URL",
                context={"operation": "presign", "object_key": object_key},
                original_exception=e
            )
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expiry_seconds)
        return url, expires_at

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet (development setups)"""
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
            return
        except ClientError:
            pass
        except BotoCoreError as e:
            raise ObjectStoreError(
                "Failed to reach object store",
                context={"operation": "head_bucket", "bucket": self.bucket},
                original_exception=e
            )
        try:
            await asyncio.to_thread(self.client.create_bucket, Bucket=self.bucket)
            logger.info(f"Created bucket {self.bucket}")
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(
                "Failed to create bucket",
                context={"operation": "create_bucket", "bucket": self.bucket},
                original_exception=e
            )
