"""
Storage abstraction for S3-compatible object storage and in-memory testing.

A client is bound to one bucket; the service uses two (user images and food
images). Public URLs follow the ``<base>/object/public/<bucket>/<path>`` layout
so a stored URL can be mapped back to its object path.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from food_diary.errors import StorageError

DEFAULT_CACHE_CONTROL = "3600"


def public_url_prefix(base_url: str, bucket: str) -> str:
    return f"{base_url.rstrip('/')}/object/public/{bucket}/"


@dataclass
class StoredObject:
    path: str
    last_modified: float


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    bucket: str

    def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        cache_control: str = DEFAULT_CACHE_CONTROL,
        upsert: bool = True,
    ) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...

    def remove(self, paths: Iterable[str]) -> None:
        ...

    def list_objects(self) -> list[StoredObject]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "food_bk"
    base_url: str = "https://example.test/storage/v1"
    stored_objects: dict = field(default_factory=dict)
    fail_uploads: bool = False
    fail_removals: bool = False

    def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        cache_control: str = DEFAULT_CACHE_CONTROL,
        upsert: bool = True,
    ) -> None:
        if self.fail_uploads:
            raise StorageError(f"upload of {path} rejected")
        if not upsert and path in self.stored_objects:
            raise StorageError(f"{path} already exists")
        self.stored_objects[path] = {
            "data": bytes(data),
            "content_type": content_type,
            "cache_control": cache_control,
            "last_modified": time.time(),
        }

    def public_url(self, path: str) -> str:
        return public_url_prefix(self.base_url, self.bucket) + quote(path)

    def remove(self, paths: Iterable[str]) -> None:
        if self.fail_removals:
            raise StorageError("remove rejected")
        for path in paths:
            self.stored_objects.pop(path, None)

    def list_objects(self) -> list[StoredObject]:
        return [
            StoredObject(path=path, last_modified=meta["last_modified"])
            for path, meta in self.stored_objects.items()
        ]

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored["data"]


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (Supabase Storage, MinIO, AWS S3).
    """

    bucket: str
    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str

    def __post_init__(self):
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

    def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        cache_control: str = DEFAULT_CACHE_CONTROL,
        upsert: bool = True,
    ) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": path,
            "Body": data,
            "CacheControl": f"max-age={cache_control}",
        }
        if content_type:
            params["ContentType"] = content_type
        if not upsert:
            # Conditional write; rejected with 412 when the key exists.
            params["IfNoneMatch"] = "*"
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def public_url(self, path: str) -> str:
        return public_url_prefix(self.public_base_url, self.bucket) + quote(path)

    def remove(self, paths: Iterable[str]) -> None:
        objects = [{"Key": path} for path in paths]
        if not objects:
            return
        try:
            response = self._client.delete_objects(
                Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True}
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        errors = response.get("Errors") or []
        if errors:
            raise StorageError(
                ", ".join(f"{e.get('Key')}: {e.get('Message')}" for e in errors)
            )

    def list_objects(self) -> list[StoredObject]:
        objects: list[StoredObject] = []
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket):
                for item in page.get("Contents") or []:
                    objects.append(
                        StoredObject(
                            path=item["Key"],
                            last_modified=item["LastModified"].timestamp(),
                        )
                    )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        return objects
