"""
Storage abstraction for S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "client-files"


class StorageError(Exception):
    """Raised when an object store operation fails."""


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def remove(self, paths: Iterable[str]) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        # Uploads never overwrite an existing object.
        if path in self.stored_objects:
            raise StorageError(f"Object already exists: {path}")
        self.stored_objects[path] = bytes(data)
        self.content_types[path] = content_type

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.stored_objects.pop(path, None)
            self.content_types.pop(path, None)

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, MinIO, Supabase storage S3 gateway).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

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

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                # Refuse to overwrite an existing key.
                IfNoneMatch="*",
            )
        except ClientError as exc:
            raise StorageError(f"Upload failed for {path}: {exc}") from exc

    def remove(self, paths: Iterable[str]) -> None:
        objects = [{"Key": path} for path in paths]
        if not objects:
            return
        try:
            response = self._client.delete_objects(
                Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True}
            )
        except ClientError as exc:
            raise StorageError(f"Remove failed: {exc}") from exc
        errors = response.get("Errors") or []
        if errors:
            raise StorageError(
                "Remove failed for " + ", ".join(e.get("Key", "?") for e in errors)
            )

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise FileNotFoundError(path) from exc
            raise StorageError(f"Download failed for {path}: {exc}") from exc
        return response["Body"].read()

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )
