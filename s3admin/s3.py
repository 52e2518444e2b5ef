from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import DeleteError, ListingError

ENTRY_DIRECTORY = "directory"
ENTRY_FILE = "file"

MAX_PAGE_SIZE = 1000
FLAT_PAGE_SIZE = 1000


@dataclass(frozen=True)
class Entry:
    key: str
    name: str
    kind: str
    size: Optional[int] = None
    modified_at: Optional[datetime] = None
    url: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.kind == ENTRY_DIRECTORY


@dataclass(frozen=True)
class Page:
    entries: list[Entry] = field(default_factory=list)
    next_cursor: Optional[str] = None
    truncated: bool = False

    @classmethod
    def build(
        cls, entries: list[Entry], cursor: Optional[str], truncated: bool
    ) -> "Page":
        # A cursor on the last page is meaningless.
        return cls(
            entries=list(entries),
            next_cursor=cursor if truncated and cursor else None,
            truncated=bool(truncated and cursor),
        )


@dataclass(frozen=True)
class FlatPage:
    keys: list[str] = field(default_factory=list)
    next_cursor: Optional[str] = None
    truncated: bool = False

    @classmethod
    def build(
        cls, keys: list[str], cursor: Optional[str], truncated: bool
    ) -> "FlatPage":
        return cls(
            keys=list(keys),
            next_cursor=cursor if truncated and cursor else None,
            truncated=bool(truncated and cursor),
        )


def normalize_prefix(value: Optional[str]) -> str:
    trimmed = (value or "").strip("/")
    if not trimmed:
        return ""
    return f"{trimmed}/"


def parent_prefix(prefix: str) -> str:
    trimmed = prefix.rstrip("/")
    if "/" not in trimmed:
        return ""
    return trimmed.rsplit("/", 1)[0] + "/"


def display_segment(key: str, prefix: str) -> str:
    remainder = key[len(prefix) :] if prefix and key.startswith(prefix) else key
    remainder = remainder.rstrip("/")
    return remainder.rsplit("/", 1)[-1] or key


class S3Service:
    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        self.profile = None if profile in (None, "", "default") else profile
        self._region = region
        self._endpoint_url = endpoint_url
        self._public_base_url = (public_base_url or "").rstrip("/") or None
        self._clients: dict[str, object] = {}

    def _profile_key(self, profile: Optional[str]) -> str:
        return profile or "__default__"

    def _client(self, profile: Optional[str] = None):
        profile = profile if profile is not None else self.profile
        key = self._profile_key(profile)
        if key in self._clients:
            return self._clients[key]
        if profile is None:
            session = boto3.session.Session()
        else:
            session = boto3.session.Session(profile_name=profile)
        kwargs = {}
        if self._region:
            kwargs["region_name"] = self._region
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        client = session.client("s3", **kwargs)
        self._clients[key] = client
        return client

    def object_url(self, key: str) -> Optional[str]:
        if not self._public_base_url:
            return None
        return f"{self._public_base_url}/{key}"

    async def list_buckets(self) -> list[str]:
        return await asyncio.to_thread(self._list_buckets)

    def _list_buckets(self) -> list[str]:
        try:
            response = self._client().list_buckets()
        except (BotoCoreError, ClientError) as exc:
            raise ListingError(f"{exc}") from exc
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    async def list_page(
        self,
        bucket: str,
        prefix: str,
        cursor: Optional[str] = None,
        page_size: int = 50,
    ) -> Page:
        return await asyncio.to_thread(
            self._list_page, bucket, prefix, cursor, page_size
        )

    def _list_page(
        self, bucket: str, prefix: str, cursor: Optional[str], page_size: int
    ) -> Page:
        prefix = normalize_prefix(prefix)
        kwargs = {
            "Bucket": bucket,
            "Delimiter": "/",
            "Prefix": prefix,
            "MaxKeys": max(1, min(MAX_PAGE_SIZE, int(page_size))),
        }
        if cursor:
            kwargs["ContinuationToken"] = cursor
        try:
            response = self._client().list_objects_v2(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise ListingError(f"{exc}") from exc

        directories: list[Entry] = []
        files: list[Entry] = []
        for item in response.get("CommonPrefixes", []):
            value = item.get("Prefix")
            if not value:
                continue
            directories.append(
                Entry(
                    key=value,
                    name=display_segment(value, prefix),
                    kind=ENTRY_DIRECTORY,
                )
            )
        for item in response.get("Contents", []):
            key = item.get("Key")
            if not key:
                continue
            if prefix and key == prefix:
                continue
            files.append(
                Entry(
                    key=key,
                    name=display_segment(key, prefix),
                    kind=ENTRY_FILE,
                    size=int(item.get("Size", 0)),
                    modified_at=item.get("LastModified"),
                    url=self.object_url(key),
                )
            )
        return Page.build(
            directories + files,
            response.get("NextContinuationToken"),
            bool(response.get("IsTruncated")),
        )

    async def list_flat_page(
        self, bucket: str, prefix: str, cursor: Optional[str] = None
    ) -> FlatPage:
        return await asyncio.to_thread(self._list_flat_page, bucket, prefix, cursor)

    def _list_flat_page(
        self, bucket: str, prefix: str, cursor: Optional[str]
    ) -> FlatPage:
        kwargs = {
            "Bucket": bucket,
            "Prefix": normalize_prefix(prefix),
            "MaxKeys": FLAT_PAGE_SIZE,
        }
        if cursor:
            kwargs["ContinuationToken"] = cursor
        try:
            response = self._client().list_objects_v2(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise ListingError(f"{exc}") from exc
        keys = [
            item["Key"] for item in response.get("Contents", []) if item.get("Key")
        ]
        return FlatPage.build(
            keys,
            response.get("NextContinuationToken"),
            bool(response.get("IsTruncated")),
        )

    async def delete_object(
        self, bucket: str, key: str, recursive: bool = False
    ) -> None:
        await asyncio.to_thread(self._delete_object, bucket, key, recursive)

    def _delete_object(self, bucket: str, key: str, recursive: bool) -> None:
        if not key:
            raise DeleteError("Missing key", key=key)
        client = self._client()
        try:
            if key.endswith("/") and not recursive:
                if not self._is_directory_empty(client, bucket, key):
                    raise DeleteError("not-empty", key=key)
            client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise DeleteError(f"{exc}", key=key) from exc

    def _is_directory_empty(self, client, bucket: str, key: str) -> bool:
        response = client.list_objects_v2(Bucket=bucket, Prefix=key, MaxKeys=2)
        if response.get("CommonPrefixes"):
            return False
        for item in response.get("Contents", []):
            if item.get("Key") != key:
                return False
        return True


class BucketClient:
    """Listing and delete calls bound to a single bucket."""

    def __init__(self, service: S3Service, bucket: str) -> None:
        self.service = service
        self.bucket = bucket

    async def list_page(
        self, prefix: str, cursor: Optional[str], page_size: int
    ) -> Page:
        return await self.service.list_page(self.bucket, prefix, cursor, page_size)

    async def list_flat_page(self, prefix: str, cursor: Optional[str]) -> FlatPage:
        return await self.service.list_flat_page(self.bucket, prefix, cursor)

    async def delete(self, key: str, recursive: bool = False) -> None:
        await self.service.delete_object(self.bucket, key, recursive=recursive)
