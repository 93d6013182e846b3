from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import assert_never

from bucketbind.config import BindingConfig
from bucketbind.errors import (
    InitializationError,
    NotFoundOrReadError,
    PresignError,
    ProvisioningError,
    ReadError,
    RemovalError,
    SerializationError,
    UploadError,
    ValidationError,
)
from bucketbind.literals import unquote
from bucketbind.observability import log_event
from bucketbind.operations import ListParams, ObjectParams, Operation, PresignedGetParams
from bucketbind.reader import read_all
from bucketbind.storage import ObjectInfo, StorageBackend, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    operation: str
    data: bytes = b""
    metadata: Mapping[str, str] | None = None


@dataclass(frozen=True)
class Response:
    data: bytes
    metadata: dict[str, str] | None = None


def unquote_payload(data: bytes) -> bytes:
    """Unwrap a payload sent as a quoted Go string literal.

    Anything that does not unquote cleanly is returned untouched.
    """
    try:
        return unquote(data.decode())
    except ValueError:
        return data


def _file_info(info: ObjectInfo) -> dict[str, str]:
    return {
        "size": str(info.size),
        "versionID": info.version_id or "",
        "key": info.key,
    }


async def ensure_bucket(backend: StorageBackend, bucket: str, region: str) -> None:
    try:
        exists = await backend.bucket_exists(bucket)
    except StorageError as exc:
        raise InitializationError(f"error checking bucket {bucket}: {exc}") from exc
    if exists:
        return
    try:
        await backend.make_bucket(bucket, region)
    except StorageError as exc:
        raise ProvisioningError(f"make bucket {bucket} error: {exc}") from exc
    log_event(logger, "created bucket", bucket=bucket, region=region)


@dataclass
class Binding:
    backend: StorageBackend
    bucket: str
    region: str = ""
    ready: bool = field(default=False, init=False)

    @classmethod
    @asynccontextmanager
    async def connect(cls, properties: Mapping[str, str]) -> AsyncIterator[Binding]:
        from bucketbind.storage.s3 import S3Storage

        config = BindingConfig.from_properties(properties)
        async with S3Storage.connect(
            endpoint=config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key,
            region=config.region,
            secure=config.ssl,
        ) as storage:
            binding = cls(storage, config.bucket, config.region)
            await binding.init()
            yield binding

    async def init(self) -> None:
        await ensure_bucket(self.backend, self.bucket, self.region)
        self.ready = True
        log_event(logger, "binding ready", bucket=self.bucket, region=self.region)

    def operations(self) -> list[Operation]:
        return list(Operation)

    async def invoke(self, request: Request | None) -> Response | None:
        if request is None:
            raise ValidationError("invoke request required")
        if not self.ready:
            raise InitializationError(f"binding for bucket {self.bucket} is not initialized")
        operation = Operation.parse(request.operation)
        metadata = request.metadata or {}
        log_event(logger, "invoke", level=logging.DEBUG, operation=operation.value, bucket=self.bucket)
        match operation:
            case Operation.CREATE:
                return await self.create_object(ObjectParams.from_metadata(metadata, operation), request.data)
            case Operation.GET:
                return await self.get_object(ObjectParams.from_metadata(metadata, operation))
            case Operation.DELETE:
                return await self.delete_object(ObjectParams.from_metadata(metadata, operation))
            case Operation.LIST:
                return await self.list_objects(ListParams.from_metadata(metadata, operation))
            case Operation.PRESIGNED_GET:
                return await self.presigned_get(PresignedGetParams.from_metadata(metadata, operation))
            case _:
                assert_never(operation)

    async def create_object(self, params: ObjectParams, data: bytes) -> Response:
        body = unquote_payload(data)
        try:
            info = await self.backend.put(self.bucket, params.object_name, body)
        except StorageError as exc:
            raise UploadError(f"uploading {params.object_name}: {exc}", operation=Operation.CREATE.value) from exc
        try:
            payload = json.dumps(
                {"location": info.location, "versionID": info.version_id or "", "key": info.key}
            ).encode()
        except (TypeError, ValueError) as exc:
            raise SerializationError(str(exc), operation=Operation.CREATE.value) from exc
        return Response(data=payload)

    async def get_object(self, params: ObjectParams) -> Response:
        try:
            async with self.backend.open(self.bucket, params.object_name) as handle:
                info = await handle.stat()
                data = await read_all(handle, info.size)
        except StorageError as exc:
            raise NotFoundOrReadError(
                f"get object {params.object_name} error: {exc}", operation=Operation.GET.value
            ) from exc
        except ReadError as exc:
            raise NotFoundOrReadError(
                f"read object {params.object_name} error: {exc}", operation=Operation.GET.value
            ) from exc
        return Response(data=data, metadata=_file_info(info))

    async def delete_object(self, params: ObjectParams) -> None:
        try:
            await self.backend.remove(self.bucket, params.object_name)
        except StorageError as exc:
            raise RemovalError(f"remove {params.object_name}: {exc}", operation=Operation.DELETE.value) from exc
        return None

    async def list_objects(self, params: ListParams) -> Response:
        entries: list[dict[str, str]] = []
        async for entry in self.backend.list_objects(self.bucket):
            if isinstance(entry, StorageError):
                log_event(
                    logger,
                    "skipping listing entry",
                    level=logging.WARNING,
                    bucket=self.bucket,
                    error=entry,
                )
                continue
            entries.append(_file_info(entry))
        try:
            payload = json.dumps(entries).encode()
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                f"cannot marshal blobs to json: {exc}", operation=Operation.LIST.value
            ) from exc
        return Response(data=payload)

    async def presigned_get(self, params: PresignedGetParams) -> Response:
        try:
            url = await self.backend.presigned_get(self.bucket, params.object_name, params.expires)
        except StorageError as exc:
            raise PresignError(
                f"presigned object {params.object_name} error: {exc}",
                operation=Operation.PRESIGNED_GET.value,
            ) from exc
        return Response(data=url.encode())
