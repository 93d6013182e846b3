from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from hashlib import md5
from itertools import count

from bucketbind.storage import (
    ObjectHandle,
    ObjectInfo,
    ObjectNotFound,
    StorageBackend,
    StorageError,
    check_expiry,
)


@dataclass
class Object:
    body: bytes
    version_id: str


@dataclass
class InMemoryHandle(ObjectHandle):
    info: ObjectInfo
    body: bytes
    closed: bool = False

    async def stat(self) -> ObjectInfo:
        return self.info

    async def readinto_at(self, buffer: memoryview, offset: int) -> int:
        if self.closed:
            raise StorageError("read from closed handle")
        data = self.body[offset : offset + len(buffer)]
        buffer[: len(data)] = data
        return len(data)


@dataclass
class InMemoryBackend(StorageBackend):
    storage: dict[str, dict[str, Object]] = field(
        default_factory=lambda: defaultdict(dict)
    )
    buckets: dict[str, str] = field(default_factory=dict)
    # test-only bookkeeping: every handle handed out by open(), never pruned,
    # so tests can check they were released
    handles: list[InMemoryHandle] = field(default_factory=list)
    _versions: count = field(default_factory=lambda: count(1))

    def _bucket(self, bucket: str) -> dict[str, Object]:
        if bucket not in self.buckets:
            raise ObjectNotFound(f"bucket {bucket} does not exist")
        return self.storage[bucket]

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self.buckets

    async def make_bucket(self, bucket: str, region: str) -> None:
        if bucket in self.buckets:
            raise StorageError(f"bucket {bucket} already exists")
        self.buckets[bucket] = region

    async def put(self, bucket: str, key: str, body: bytes) -> ObjectInfo:
        obj = Object(body=body, version_id=str(next(self._versions)))
        self._bucket(bucket)[key] = obj
        return ObjectInfo(
            key=key,
            size=len(body),
            version_id=obj.version_id,
            location=f"memory://{bucket}/{key}",
            etag=md5(body).hexdigest(),
        )

    @asynccontextmanager
    async def open(self, bucket: str, key: str) -> AsyncIterator[InMemoryHandle]:
        try:
            obj = self._bucket(bucket)[key]
        except KeyError:
            raise ObjectNotFound(f"object {key} does not exist") from None
        info = ObjectInfo(
            key=key,
            size=len(obj.body),
            version_id=obj.version_id,
            etag=md5(obj.body).hexdigest(),
        )
        handle = InMemoryHandle(info=info, body=obj.body)
        self.handles.append(handle)
        try:
            yield handle
        finally:
            handle.closed = True

    async def remove(self, bucket: str, key: str) -> None:
        self._bucket(bucket).pop(key, None)

    async def list_objects(self, bucket: str) -> AsyncIterator[ObjectInfo | StorageError]:
        try:
            objects = self._bucket(bucket)
        except StorageError as exc:
            yield exc
            return
        for key in sorted(objects):
            obj = objects[key]
            yield ObjectInfo(key=key, size=len(obj.body), version_id=obj.version_id)

    async def presigned_get(self, bucket: str, key: str, expires: timedelta) -> str:
        check_expiry(expires)
        self._bucket(bucket)
        return f"memory://{bucket}/{key}?expires={int(expires.total_seconds())}"
