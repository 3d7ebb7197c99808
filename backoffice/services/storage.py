"""
Object Store - S3-compatible blob storage for uploads, reports and avatars.

boto3 is synchronous; calls run in a worker thread so request handlers
keep serving while an upload is in flight.
"""

import asyncio
from typing import Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from structlog import get_logger

logger = get_logger(__name__)


class ObjectStore(Protocol):
    """Operations the API needs from object storage."""

    async def save(self, path: str, data: bytes, content_type: str) -> None: ...

    async def get_signed_read_url(self, path: str, ttl_seconds: int) -> str: ...

    async def delete(self, path: str) -> None: ...

    def public_url(self, path: str) -> str: ...


class S3ObjectStore:
    """ObjectStore backed by any S3-compatible bucket."""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        public_base_url: str = "",
    ) -> None:
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    async def save(self, path: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self._client.put_object,
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        logger.info("object_saved", path=path, size=len(data), content_type=content_type)

    async def get_signed_read_url(self, path: str, ttl_seconds: int) -> str:
        url: str = await asyncio.to_thread(
            self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=ttl_seconds,
        )
        return url

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=path)
        logger.info("object_deleted", path=path)

    def public_url(self, path: str) -> str:
        """URL for objects served publicly (avatars)."""
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(path)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(path)}"
