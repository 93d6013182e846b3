from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from functools import partial
from typing import Any, TypeVar
from urllib.parse import quote

import anyio.to_thread
import boto3  # type: ignore
from botocore.config import Config  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from bucketbind.storage import (
    ObjectHandle,
    ObjectInfo,
    ObjectNotFound,
    StorageBackend,
    StorageError,
    check_expiry,
)

T = TypeVar("T")

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def _translate(exc: Exception) -> StorageError:
    if isinstance(exc, ClientError):
        code = str((exc.response.get("Error") or {}).get("Code") or "")
        if code in _NOT_FOUND_CODES:
            return ObjectNotFound(str(exc))
    return StorageError(str(exc))


async def _call(fn: Callable[..., T], **kwargs: Any) -> T:
    # boto3 is blocking, keep it off the event loop
    try:
        return await anyio.to_thread.run_sync(partial(fn, **kwargs))
    except (ClientError, BotoCoreError) as exc:
        raise _translate(exc) from exc


def endpoint_url(endpoint: str, secure: bool) -> str:
    if "://" in endpoint:
        return endpoint
    scheme = "https" if secure else "http"
    return f"{scheme}://{endpoint}"


@dataclass
class S3Handle(ObjectHandle):
    client: Any
    bucket: str
    key: str
    info: ObjectInfo | None = None

    async def stat(self) -> ObjectInfo:
        if self.info is None:
            response = await _call(self.client.head_object, Bucket=self.bucket, Key=self.key)
            self.info = ObjectInfo(
                key=self.key,
                size=int(response["ContentLength"]),
                version_id=response.get("VersionId"),
                etag=response.get("ETag", "").strip('"'),
            )
        return self.info

    def _read_range(self, offset: int, length: int) -> bytes:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": self.key,
            "Range": f"bytes={offset}-{offset + length - 1}",
        }
        # pin every chunk to the version that was stat'ed
        if self.info is not None and self.info.version_id:
            params["VersionId"] = self.info.version_id
        body = self.client.get_object(**params)["Body"]
        try:
            return body.read()
        finally:
            body.close()

    async def readinto_at(self, buffer: memoryview, offset: int) -> int:
        try:
            data = await anyio.to_thread.run_sync(self._read_range, offset, len(buffer))
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc) from exc
        if len(data) > len(buffer):
            raise StorageError(
                f"server returned {len(data)} bytes for a {len(buffer)} byte range of {self.key}"
            )
        buffer[: len(data)] = data
        return len(data)


@dataclass
class S3Storage(StorageBackend):
    client: Any

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        endpoint: str,
        access_key: str,
        secret_key: str,
        region: str = "",
        secure: bool = False,
    ) -> AsyncIterator[S3Storage]:
        client = boto3.client(
            "s3",
            endpoint_url=endpoint_url(endpoint, secure),
            region_name=region or "us-east-1",
            use_ssl=secure,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        try:
            yield cls(client)
        finally:
            client.close()

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await _call(self.client.head_bucket, Bucket=bucket)
        except ObjectNotFound:
            return False
        return True

    async def make_bucket(self, bucket: str, region: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await _call(self.client.create_bucket, **params)

    async def put(self, bucket: str, key: str, body: bytes) -> ObjectInfo:
        response = await _call(self.client.put_object, Bucket=bucket, Key=key, Body=body)
        return ObjectInfo(
            key=key,
            size=len(body),
            version_id=response.get("VersionId"),
            location=f"{self.client.meta.endpoint_url}/{bucket}/{quote(key)}",
            etag=response.get("ETag", "").strip('"'),
        )

    @asynccontextmanager
    async def open(self, bucket: str, key: str) -> AsyncIterator[S3Handle]:
        # ranged GETs hold no connection between calls, nothing to release
        yield S3Handle(self.client, bucket, key)

    async def remove(self, bucket: str, key: str) -> None:
        await _call(
            self.client.delete_object,
            Bucket=bucket,
            Key=key,
            BypassGovernanceRetention=True,
        )

    async def list_objects(self, bucket: str) -> AsyncIterator[ObjectInfo | StorageError]:
        pages = iter(self.client.get_paginator("list_objects").paginate(Bucket=bucket))
        while True:
            try:
                page = await anyio.to_thread.run_sync(next, pages, None)
            except (ClientError, BotoCoreError) as exc:
                yield _translate(exc)
                return
            if page is None:
                return
            for entry in page.get("Contents") or []:
                try:
                    info = ObjectInfo(key=entry["Key"], size=int(entry["Size"]))
                except (KeyError, TypeError, ValueError) as exc:
                    yield StorageError(f"malformed listing entry {entry!r}: {exc!r}")
                    continue
                yield info

    async def presigned_get(self, bucket: str, key: str, expires: timedelta) -> str:
        check_expiry(expires)
        return await _call(
            self.client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=int(expires.total_seconds()),
        )
