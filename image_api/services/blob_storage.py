"""
Blob storage for original and processed image files.

Records keep only the public path of a file, "/images/<uuid>_<name>".
The storage backend maps that path to a file on disk (LocalBlobStorage,
served statically under the same prefix) or to an object in a MinIO
bucket (MinioBlobStorage). Blocking calls run in the default executor.
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Optional

import structlog
from fastapi import Request
from minio import Minio
from minio.error import S3Error

from image_api.core.config import Settings
from image_api.core.utils import unique_filename

logger = structlog.get_logger(__name__)

PUBLIC_PREFIX = "images"


def public_path(name: str) -> str:
    return f"/{PUBLIC_PREFIX}/{name}"


def name_from_public_path(path: str) -> Optional[str]:
    """Stored file name behind a public path, or None if the path names no file."""
    if not path:
        return None
    name = path.strip().replace("\\", "/").rsplit("/", 1)[-1]
    if name in ("", ".", ".."):
        return None
    return name


async def _run_blocking(func, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


class BlobStorage:
    async def save(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store data under a fresh unique name and return its public path."""
        raise NotImplementedError

    async def delete(self, path: str) -> bool:
        """Remove the file behind a public path. False if it was already gone."""
        raise NotImplementedError

    async def exists(self, path: str) -> bool:
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _file_for(self, path: str) -> Optional[Path]:
        name = name_from_public_path(path)
        return self.root / name if name else None

    async def save(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        name = unique_filename(filename)
        target = self.root / name
        await _run_blocking(self._write, target, data)
        logger.info("blob.saved", backend="local", name=name, size_bytes=len(data))
        return public_path(name)

    def _write(self, target: Path, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def delete(self, path: str) -> bool:
        target = self._file_for(path)
        if target is None:
            return False
        try:
            await _run_blocking(target.unlink)
        except FileNotFoundError:
            logger.info("blob.missing", backend="local", path=path)
            return False
        logger.info("blob.deleted", backend="local", path=path)
        return True

    async def exists(self, path: str) -> bool:
        target = self._file_for(path)
        if target is None:
            return False
        return await _run_blocking(target.is_file)


class MinioBlobStorage(BlobStorage):
    """Objects live at images/<name> in one bucket. S3 failures surface as OSError."""

    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioBlobStorage":
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        return cls(client, settings.minio_bucket)

    @staticmethod
    def _object_name(name: str) -> str:
        return f"{PUBLIC_PREFIX}/{name}"

    async def _call(self, func, *args):
        try:
            return await _run_blocking(func, *args)
        except S3Error as err:
            raise OSError(f"MinIO {err.code}: {err.message}") from err

    async def ensure_bucket(self) -> None:
        if not await self._call(self.client.bucket_exists, self.bucket):
            await self._call(self.client.make_bucket, self.bucket)
            logger.info("blob.bucket_created", bucket=self.bucket)

    async def save(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        name = unique_filename(filename)
        await self._call(self._put, self._object_name(name), data, content_type)
        logger.info("blob.saved", backend="minio", bucket=self.bucket, name=name, size_bytes=len(data))
        return public_path(name)

    def _put(self, object_name: str, data: bytes, content_type: Optional[str]) -> None:
        self.client.put_object(
            self.bucket,
            object_name,
            data=BytesIO(data),
            length=len(data),
            content_type=content_type or "application/octet-stream",
        )

    def _stat(self, object_name: str) -> bool:
        try:
            self.client.stat_object(self.bucket, object_name)
        except S3Error as err:
            if err.code in ("NoSuchKey", "NoSuchObject", "NotFound"):
                return False
            raise
        return True

    async def delete(self, path: str) -> bool:
        name = name_from_public_path(path)
        if name is None:
            return False
        if not await self._call(self._stat, self._object_name(name)):
            logger.info("blob.missing", backend="minio", path=path)
            return False
        await self._call(self.client.remove_object, self.bucket, self._object_name(name))
        logger.info("blob.deleted", backend="minio", path=path)
        return True

    async def exists(self, path: str) -> bool:
        name = name_from_public_path(path)
        if name is None:
            return False
        return await self._call(self._stat, self._object_name(name))


def build_blob_storage(settings: Settings) -> BlobStorage:
    if settings.blob_backend == "minio":
        return MinioBlobStorage.from_settings(settings)
    return LocalBlobStorage(settings.images_dir)


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blobs
