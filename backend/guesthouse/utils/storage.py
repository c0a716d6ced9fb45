"""
Blob storage for uploaded images and timetable PDFs.

The admin UI uploads files straight to storage with a short-lived
pre-signed PUT URL and then saves the resulting public blob URL on the
content row. `InMemoryStorageClient` backs development and tests;
`S3StorageClient` talks to any S3-compatible endpoint through boto3.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import settings

logger = logging.getLogger("guesthouse.storage")

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
}


def detect_content_type(name: str) -> str:
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return CONTENT_TYPES.get(ext, "application/octet-stream")


class StorageClient(Protocol):
    """Operations the API needs from blob storage."""

    def presign_put(self, blob_name: str, content_type: str, expires_in: int) -> str:
        ...

    def public_url(self, blob_name: str) -> str:
        ...

    def upload_bytes(self, blob_name: str, data: bytes, content_type: str) -> str:
        ...

    def delete_url(self, url: str) -> bool:
        ...


def _blob_name_from_url(url: str, base_url: str) -> Optional[str]:
    """Return the blob name for a URL under `base_url`, or None."""
    base = base_url.rstrip("/")
    if not url.startswith(base + "/"):
        return None
    name = urlparse(url[len(base) + 1:]).path
    return name or None


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "http://127.0.0.1:10000/public"
    stored_objects: dict = field(default_factory=dict)

    def presign_put(self, blob_name: str, content_type: str, expires_in: int) -> str:
        return f"{self.public_url(blob_name)}?op=put&ct={content_type}&expires={expires_in}"

    def public_url(self, blob_name: str) -> str:
        return f"{self.base_url.rstrip('/')}/{blob_name}"

    def upload_bytes(self, blob_name: str, data: bytes, content_type: str) -> str:
        self.stored_objects[blob_name] = data
        return self.public_url(blob_name)

    def delete_url(self, url: str) -> bool:
        name = _blob_name_from_url(url, self.base_url)
        if name is None:
            raise ValueError("invalid url")
        return self.stored_objects.pop(name, None) is not None


@dataclass
class S3StorageClient:
    """S3-compatible storage client.

    `public_base_url` is the address readers use for stored blobs
    (bucket website, CDN or the endpoint itself).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def presign_put(self, blob_name: str, content_type: str, expires_in: int) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": blob_name, "ContentType": content_type},
            ExpiresIn=expires_in,
        )

    def public_url(self, blob_name: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{blob_name}"

    def upload_bytes(self, blob_name: str, data: bytes, content_type: str) -> str:
        self._client.put_object(Bucket=self.bucket, Key=blob_name, Body=data, ContentType=content_type)
        return self.public_url(blob_name)

    def delete_url(self, url: str) -> bool:
        name = _blob_name_from_url(url, self.public_base_url)
        if name is None:
            raise ValueError("invalid url")
        try:
            self._client.delete_object(Bucket=self.bucket, Key=name)
        except ClientError as exc:
            # a missing blob counts as deleted
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return False
            raise
        return True


_storage_client: Optional[StorageClient] = None


def get_storage_client() -> StorageClient:
    """Return the process-wide storage client selected by `STORAGE_BACKEND`."""
    global _storage_client
    if _storage_client:
        return _storage_client
    if settings.STORAGE_BACKEND == "s3":
        _storage_client = S3StorageClient(
            bucket=settings.STORAGE_BUCKET,
            region=settings.STORAGE_REGION,
            endpoint=settings.STORAGE_ENDPOINT,
            access_key_id=settings.STORAGE_ACCESS_KEY_ID,
            secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
            public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
        )
    else:
        _storage_client = InMemoryStorageClient(base_url=settings.STORAGE_PUBLIC_BASE_URL)
    logger.info("storage backend %s", settings.STORAGE_BACKEND)
    return _storage_client
