from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol


class StorageError(Exception):
    """A failure reported by a storage backend."""


class ObjectNotFound(StorageError):
    pass


MIN_EXPIRY = timedelta(seconds=1)
MAX_EXPIRY = timedelta(days=7)


def check_expiry(expires: timedelta) -> None:
    # presigned URLs are only valid for between one second and seven days
    if not MIN_EXPIRY <= expires <= MAX_EXPIRY:
        raise StorageError(
            f"presigned URL expiry must be between {MIN_EXPIRY} and {MAX_EXPIRY}, got {expires}"
        )


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    version_id: str | None = None
    location: str = ""
    etag: str = ""


class ObjectHandle(Protocol):
    async def stat(self) -> ObjectInfo: ...

    async def readinto_at(self, buffer: memoryview, offset: int) -> int:
        """Fill ``buffer`` with the object's bytes starting at ``offset``.

        Returns the number of bytes written, which is less than ``len(buffer)``
        only when the object ends early.
        """
        ...


class StorageBackend(Protocol):
    async def bucket_exists(self, bucket: str) -> bool: ...

    async def make_bucket(self, bucket: str, region: str) -> None: ...

    async def put(self, bucket: str, key: str, body: bytes) -> ObjectInfo: ...

    def open(self, bucket: str, key: str) -> AbstractAsyncContextManager[ObjectHandle]: ...

    async def remove(self, bucket: str, key: str) -> None: ...

    def list_objects(self, bucket: str) -> AsyncIterator[ObjectInfo | StorageError]:
        """Yield every object in the bucket.

        Entries the backend could not describe are yielded as ``StorageError``
        instead of being raised, so one bad entry does not end the listing.
        """
        ...

    async def presigned_get(self, bucket: str, key: str, expires: timedelta) -> str: ...
