"""
Storage abstraction for Supabase Storage (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config

PUBLIC_OBJECT_PREFIX = re.compile(r"^https://[^/]+/storage/v1/object/public")


def rewrite_storage_url(url: str, custom_base_url: str) -> str:
    """
    Swap the provider's public object prefix for the configured custom domain.

    `https://<project>.supabase.co/storage/v1/object/public/files/photo/a.png`
    becomes `<custom_base_url>/files/photo/a.png`. Other URLs pass through.
    """
    if not url or not custom_base_url:
        return url
    return PUBLIC_OBJECT_PREFIX.sub(custom_base_url.rstrip("/"), url, count=1)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.supabase.co"
    bucket: str = "files"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.stored_objects[path] = (data, content_type)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"


@dataclass
class SupabaseStorageClient:
    """
    Supabase Storage through its S3-compatible endpoint
    (`https://<project>.supabase.co/storage/v1/s3`).
    """

    bucket: str
    project_url: str
    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Supabase's S3 gateway only understands path-style addressing.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    def public_url(self, path: str) -> str:
        base = self.project_url.rstrip("/")
        return f"{base}/storage/v1/object/public/{self.bucket}/{path}"


def default_s3_endpoint(project_url: Optional[str]) -> Optional[str]:
    if not project_url:
        return None
    return f"{project_url.rstrip('/')}/storage/v1/s3"
