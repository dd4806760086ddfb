"""Object storage (S3-compatible) for uploaded documents and images."""

from __future__ import annotations

import logging

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from careerbridge.core.config import settings
from careerbridge.core.errors import IntegrationError

logger = logging.getLogger(__name__)


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def get_s3_client() -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=_normalize_endpoint(settings.S3_ENDPOINT_URL),
    )


class S3StorageClient:
    """Uploads objects and builds their public URL."""

    def __init__(self, bucket: str, public_base_url: str = "", client: BaseClient | None = None):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.bucket)

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        endpoint = _normalize_endpoint(settings.S3_ENDPOINT_URL)
        if endpoint:
            return f"{endpoint}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{settings.S3_REGION}.amazonaws.com/{key}"

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        if not self.is_configured():
            raise IntegrationError("Storage bucket not configured", code="STORAGE_NOT_CONFIGURED")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed for key=%s: %s", key, exc)
            raise IntegrationError("Upload failed", code="STORAGE_FAILED") from exc
        return self.public_url(key)
