import asyncio

import pytest
from minio.error import S3Error

from image_api.core.utils import unique_filename
from image_api.services.blob_storage import (
    LocalBlobStorage,
    MinioBlobStorage,
    name_from_public_path,
)


def s3_error(code, bucket, object_name=None):
    return S3Error(
        response=None,
        code=code,
        message=f"{code} raised by the fake client",
        resource=f"/{bucket}/{object_name or ''}",
        request_id="req-1",
        host_id="host-1",
        bucket_name=bucket,
        object_name=object_name,
    )


class FakeMinio:
    """In-memory stand-in for the parts of minio.Minio the storage uses."""

    def __init__(self, buckets=()):
        self.buckets = set(buckets)
        self.objects = {}
        self.fail_with = None

    def bucket_exists(self, bucket):
        return bucket in self.buckets

    def make_bucket(self, bucket):
        self.buckets.add(bucket)

    def put_object(self, bucket, object_name, data, length, content_type=None):
        if self.fail_with:
            raise s3_error(self.fail_with, bucket, object_name)
        self.objects[(bucket, object_name)] = data.read(length)

    def stat_object(self, bucket, object_name):
        if self.fail_with:
            raise s3_error(self.fail_with, bucket, object_name)
        if (bucket, object_name) not in self.objects:
            raise s3_error("NoSuchKey", bucket, object_name)
        return self.objects[(bucket, object_name)]

    def remove_object(self, bucket, object_name):
        del self.objects[(bucket, object_name)]


def test_unique_filename_keeps_only_basename():
    assert unique_filename("../../etc/passwd").endswith("_passwd")
    assert unique_filename("C:\\Users\\ana\\photo.png").endswith("_photo.png")
    assert unique_filename("").endswith("_upload")
    assert unique_filename("a.png") != unique_filename("a.png")


def test_name_from_public_path():
    assert name_from_public_path("/images/abc_photo.png") == "abc_photo.png"
    assert name_from_public_path("") is None
    assert name_from_public_path("/images/..") is None
    assert name_from_public_path("/images/.") is None
    assert name_from_public_path("/images/") is None
    assert name_from_public_path("/images/..\\keep.txt") == "keep.txt"


def test_local_save_and_delete(tmp_path):
    storage = LocalBlobStorage(tmp_path / "images")

    async def scenario():
        path = await storage.save("photo.png", b"data")
        assert path.startswith("/images/")
        assert await storage.exists(path)
        assert await storage.delete(path) is True
        assert not await storage.exists(path)
        # already gone
        assert await storage.delete(path) is False
        assert await storage.delete("") is False

    asyncio.run(scenario())
    assert list((tmp_path / "images").iterdir()) == []


def test_local_delete_cannot_escape_root(tmp_path):
    root = tmp_path / "images"
    storage = LocalBlobStorage(root)
    outside = tmp_path / "keep.txt"
    outside.write_text("keep")

    asyncio.run(storage.delete("/images/../keep.txt"))
    assert outside.exists()


def test_minio_backend_round_trip():
    client = FakeMinio()
    storage = MinioBlobStorage(client, "images")

    async def scenario():
        await storage.ensure_bucket()
        path = await storage.save("photo.png", b"data", "image/png")
        name = name_from_public_path(path)
        assert client.objects[("images", f"images/{name}")] == b"data"
        assert await storage.exists(path)
        assert await storage.delete(path) is True
        return name

    asyncio.run(scenario())
    assert "images" in client.buckets
    assert client.objects == {}


def test_minio_delete_of_missing_object_is_not_an_error():
    storage = MinioBlobStorage(FakeMinio(buckets=["images"]), "images")

    async def scenario():
        assert not await storage.exists("/images/gone.png")
        assert await storage.delete("/images/gone.png") is False

    asyncio.run(scenario())


def test_minio_failures_surface_as_os_error():
    client = FakeMinio(buckets=["images"])
    storage = MinioBlobStorage(client, "images")
    path = asyncio.run(storage.save("photo.png", b"data"))

    client.fail_with = "AccessDenied"
    with pytest.raises(OSError, match="AccessDenied"):
        asyncio.run(storage.delete(path))
    with pytest.raises(OSError, match="AccessDenied"):
        asyncio.run(storage.save("other.png", b"data"))
    with pytest.raises(OSError):
        asyncio.run(storage.exists(path))
    assert len(client.objects) == 1
