import io
from datetime import timedelta
from typing import AsyncIterator, Iterator
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from botocore.exceptions import ClientError  # type: ignore
from botocore.response import StreamingBody  # type: ignore

from bucketbind.reader import read_all
from bucketbind.storage import ObjectInfo, ObjectNotFound, StorageError
from bucketbind.storage.s3 import S3Storage, endpoint_url


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def streaming(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.meta.endpoint_url = "http://minio:9000"
    return client


@pytest.fixture
def storage(client: MagicMock) -> S3Storage:
    return S3Storage(client)


def test_endpoint_url() -> None:
    assert endpoint_url("minio:9000", secure=False) == "http://minio:9000"
    assert endpoint_url("minio:9000", secure=True) == "https://minio:9000"
    assert endpoint_url("https://s3.example.com", secure=False) == "https://s3.example.com"


@pytest.mark.anyio
async def test_bucket_exists(storage: S3Storage, client: MagicMock) -> None:
    assert await storage.bucket_exists("fos")
    client.head_bucket.assert_called_once_with(Bucket="fos")

    client.head_bucket.side_effect = client_error("404", "HeadBucket")
    assert not await storage.bucket_exists("fos")


@pytest.mark.anyio
async def test_bucket_exists_propagates_other_errors(storage: S3Storage, client: MagicMock) -> None:
    client.head_bucket.side_effect = client_error("AccessDenied", "HeadBucket")
    with pytest.raises(StorageError, match="AccessDenied"):
        await storage.bucket_exists("fos")


@pytest.mark.anyio
async def test_make_bucket_region(storage: S3Storage, client: MagicMock) -> None:
    await storage.make_bucket("fos", "lb-1")
    client.create_bucket.assert_called_once_with(
        Bucket="fos", CreateBucketConfiguration={"LocationConstraint": "lb-1"}
    )
    client.create_bucket.reset_mock()
    await storage.make_bucket("fos", "")
    client.create_bucket.assert_called_once_with(Bucket="fos")


@pytest.mark.anyio
async def test_put(storage: S3Storage, client: MagicMock) -> None:
    client.put_object.return_value = {"ETag": '"abc"', "VersionId": "v1"}
    info = await storage.put("fos", "dir/test file", b"hello")
    client.put_object.assert_called_once_with(Bucket="fos", Key="dir/test file", Body=b"hello")
    assert info == ObjectInfo(
        key="dir/test file",
        size=5,
        version_id="v1",
        location="http://minio:9000/fos/dir/test%20file",
        etag="abc",
    )


@pytest.mark.anyio
async def test_open_reads_pinned_ranges(storage: S3Storage, client: MagicMock) -> None:
    body = b"0123456789"
    client.head_object.return_value = {"ContentLength": len(body), "VersionId": "v7", "ETag": '"e"'}

    def get_object(**params: str) -> dict[str, StreamingBody]:
        start, end = params["Range"].removeprefix("bytes=").split("-")
        return {"Body": streaming(body[int(start) : int(end) + 1])}

    client.get_object.side_effect = get_object
    async with storage.open("fos", "k") as handle:
        info = await handle.stat()
        data = await read_all(handle, info.size, chunk=4)
    assert data == body
    assert info.version_id == "v7"
    assert [call.kwargs["Range"] for call in client.get_object.call_args_list] == [
        "bytes=0-3",
        "bytes=4-7",
        "bytes=8-9",
    ]
    assert all(call.kwargs["VersionId"] == "v7" for call in client.get_object.call_args_list)
    client.head_object.assert_called_once_with(Bucket="fos", Key="k")


@pytest.mark.anyio
async def test_stat_missing_object(storage: S3Storage, client: MagicMock) -> None:
    client.head_object.side_effect = client_error("404", "HeadObject")
    with pytest.raises(ObjectNotFound):
        async with storage.open("fos", "missing") as handle:
            await handle.stat()


@pytest.mark.anyio
async def test_ignored_range_is_an_error(storage: S3Storage, client: MagicMock) -> None:
    client.head_object.return_value = {"ContentLength": 10}
    client.get_object.return_value = {"Body": streaming(b"0123456789")}
    async with storage.open("fos", "k") as handle:
        await handle.stat()
        with pytest.raises(StorageError, match="10 bytes"):
            await handle.readinto_at(memoryview(bytearray(4)), 4)


@pytest.mark.anyio
async def test_remove_bypasses_governance(storage: S3Storage, client: MagicMock) -> None:
    await storage.remove("fos", "k")
    client.delete_object.assert_called_once_with(
        Bucket="fos", Key="k", BypassGovernanceRetention=True
    )


@pytest.mark.anyio
async def test_list_objects(storage: S3Storage, client: MagicMock) -> None:
    client.get_paginator.return_value.paginate.return_value = [
        {"Contents": [{"Key": "a", "Size": 1}, {"Key": "b"}]},
        {"Contents": [{"Key": "c", "Size": 3}]},
        {},
    ]
    entries = [entry async for entry in storage.list_objects("fos")]
    client.get_paginator.assert_called_once_with("list_objects")
    assert entries[0] == ObjectInfo(key="a", size=1)
    assert isinstance(entries[1], StorageError)
    assert entries[2] == ObjectInfo(key="c", size=3)
    assert len(entries) == 3


@pytest.mark.anyio
async def test_list_objects_page_error_is_yielded(storage: S3Storage, client: MagicMock) -> None:
    def pages() -> Iterator[dict[str, list[dict[str, object]]]]:
        yield {"Contents": [{"Key": "a", "Size": 1}]}
        raise client_error("InternalError", "ListObjects")

    client.get_paginator.return_value.paginate.return_value = pages()
    entries = [entry async for entry in storage.list_objects("fos")]
    assert entries[0] == ObjectInfo(key="a", size=1)
    assert isinstance(entries[1], StorageError)
    assert len(entries) == 2


@pytest.fixture
async def real_storage() -> AsyncIterator[S3Storage]:
    async with S3Storage.connect("minio:9000", "minio", "secret", region="lb-1") as storage:
        yield storage


@pytest.mark.anyio
async def test_presigned_get(real_storage: S3Storage) -> None:
    url = await real_storage.presigned_get("fos", "test_file", timedelta(seconds=60))
    parsed = urlparse(url)
    assert parsed.scheme == "http"
    assert parsed.netloc == "minio:9000"
    assert parsed.path == "/fos/test_file"
    assert parse_qs(parsed.query)["X-Amz-Expires"] == ["60"]


@pytest.mark.anyio
async def test_presigned_get_rejects_bad_expiry(real_storage: S3Storage) -> None:
    with pytest.raises(StorageError):
        await real_storage.presigned_get("fos", "k", timedelta(days=8))
