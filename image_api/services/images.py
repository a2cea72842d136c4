"""
Image lifecycle.

    pendiente --(processed file uploaded)--> procesada
        any   --(set_error)----------------> error

A pending record is created only after its original file has been stored,
and a record is removed only after both of its files have been removed
from blob storage. If the blob phase of a delete fails the row is kept.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, UploadFile
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from image_api.core.database import get_db
from image_api.core.errors import BadRequest, InternalError, NotFound, Unauthorized
from image_api.core.security import TokenService, get_token_service
from image_api.core.utils import utcnow
from image_api.models.imageRecord import (
    STATUS_ERROR,
    STATUS_PENDING,
    STATUS_PROCESSED,
    ImageRecord,
)
from image_api.models.user import User
from image_api.schemas.image import ImageIn
from image_api.services.blob_storage import BlobStorage, get_blob_storage, name_from_public_path

logger = structlog.get_logger(__name__)


async def _read_upload(file: Optional[UploadFile]) -> Optional[bytes]:
    if file is None:
        return None
    contents = await file.read()
    return contents or None


def _check_raw_fields(data: ImageIn) -> None:
    if data.status == STATUS_PENDING and data.processed_image_path:
        raise BadRequest("A pending image cannot have a processed image path.")
    for path in (data.original_image_path, data.processed_image_path):
        if path and name_from_public_path(path) is None:
            raise BadRequest(f"Image path {path!r} does not name a file.")


class ImageWorkflow:
    def __init__(self, db: AsyncSession, blobs: BlobStorage, tokens: TokenService):
        self.db = db
        self.blobs = blobs
        self.tokens = tokens

    def _authorize(self, token: Optional[str]) -> Dict[str, Any]:
        claims = self.tokens.validate(token)
        if claims is None:
            raise Unauthorized("Invalid or missing token.")
        return claims

    async def _get_record(self, image_id: int) -> ImageRecord:
        record = await self.db.get(ImageRecord, image_id)
        if record is None:
            raise NotFound(f"No image with id={image_id}.")
        return record

    async def _user_exists(self, user_id: int) -> bool:
        return await self.db.get(User, user_id) is not None

    async def _image_exists(self, image_id: int) -> bool:
        result = await self.db.execute(select(ImageRecord.image_id).where(ImageRecord.image_id == image_id))
        return result.first() is not None

    # ---------- reads ----------

    async def list_images(self, token: Optional[str], user_id: Optional[int] = None) -> List[ImageRecord]:
        self._authorize(token)
        query = select(ImageRecord).order_by(ImageRecord.image_id)
        if user_id is not None:
            query = query.where(ImageRecord.user_id == user_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_images_for_user(self, token: Optional[str], user_id: int) -> List[ImageRecord]:
        self._authorize(token)
        if not self.tokens.validate(token, user_id):
            raise Unauthorized("Token does not belong to the requested user.")
        result = await self.db.execute(
            select(ImageRecord).where(ImageRecord.user_id == user_id).order_by(ImageRecord.image_id)
        )
        return list(result.scalars().all())

    async def get_image(self, token: Optional[str], image_id: int) -> ImageRecord:
        self._authorize(token)
        return await self._get_record(image_id)

    # ---------- raw writes ----------

    async def create_image(self, token: Optional[str], data: ImageIn) -> ImageRecord:
        self._authorize(token)
        _check_raw_fields(data)
        if not await self._user_exists(data.user_id):
            raise BadRequest(f"No user with id={data.user_id}.")
        record = ImageRecord(
            user_id=data.user_id,
            original_image_path=data.original_image_path,
            processed_image_path=data.processed_image_path,
            status=data.status,
            image_metadata=data.metadata,
            scale_option=data.scale_option,
            processed_at=data.processed_at or utcnow(),
        )
        self.db.add(record)
        await self.db.commit()
        logger.info("image.created", image_id=record.image_id, user_id=record.user_id)
        return record

    async def update_image(self, token: Optional[str], image_id: int, data: ImageIn) -> None:
        """Full replace of a record. Last write wins."""
        self._authorize(token)
        if data.image_id != image_id:
            raise BadRequest("Route id and image id do not match.")
        _check_raw_fields(data)
        if not await self._user_exists(data.user_id):
            raise BadRequest(f"No user with id={data.user_id}.")

        result = await self.db.execute(
            update(ImageRecord)
            .where(ImageRecord.image_id == image_id)
            .values({
                ImageRecord.user_id: data.user_id,
                ImageRecord.original_image_path: data.original_image_path,
                ImageRecord.processed_image_path: data.processed_image_path,
                ImageRecord.status: data.status,
                ImageRecord.image_metadata: data.metadata,
                ImageRecord.scale_option: data.scale_option,
                ImageRecord.processed_at: data.processed_at or utcnow(),
            })
        )
        if result.rowcount == 0:
            await self.db.rollback()
            if not await self._image_exists(image_id):
                raise NotFound(f"No image with id={image_id}.")
            raise StaleDataError(f"Update of image {image_id} matched no row although it exists.")
        await self.db.commit()
        logger.info("image.replaced", image_id=image_id, status=data.status)

    # ---------- workflow ----------

    async def create_pending_image(
        self,
        token: Optional[str],
        user_id: int,
        scale_option: str,
        metadata: str,
        original_file: Optional[UploadFile],
    ) -> ImageRecord:
        self._authorize(token)

        contents = await _read_upload(original_file)
        if contents is None:
            raise BadRequest("No original image file was uploaded.")
        if not await self._user_exists(user_id):
            raise NotFound(f"No user with id={user_id}.")

        try:
            original_path = await self.blobs.save(original_file.filename, contents, original_file.content_type)
        except OSError as e:
            logger.error("image.original_write_failed", user_id=user_id, error=str(e))
            raise InternalError(f"Could not store the original image: {e}")

        record = ImageRecord(
            user_id=user_id,
            original_image_path=original_path,
            processed_image_path="",
            status=STATUS_PENDING,
            image_metadata=metadata or "",
            scale_option=scale_option or "",
            processed_at=utcnow(),
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self.blobs.delete(original_path)
            raise

        logger.info("image.pending_created", image_id=record.image_id, user_id=user_id, path=original_path)
        return record

    async def upload_processed_image(
        self,
        token: Optional[str],
        image_id: int,
        processed_file: Optional[UploadFile],
        scale_option: Optional[str] = None,
        metadata: Optional[str] = None,
    ) -> ImageRecord:
        self._authorize(token)

        record = await self._get_record(image_id)
        contents = await _read_upload(processed_file)
        if contents is None:
            raise BadRequest("No processed image file was uploaded.")

        try:
            processed_path = await self.blobs.save(processed_file.filename, contents, processed_file.content_type)
        except OSError as e:
            logger.error("image.processed_write_failed", image_id=image_id, error=str(e))
            raise InternalError(f"Could not store the processed image: {e}")

        record.processed_image_path = processed_path
        if scale_option is not None:
            record.scale_option = scale_option
        if metadata is not None:
            record.image_metadata = metadata
        record.status = STATUS_PROCESSED
        record.processed_at = utcnow()
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self.blobs.delete(processed_path)
            raise

        logger.info("image.processed", image_id=image_id, path=processed_path)
        return record

    async def delete_image(self, token: Optional[str], image_id: int) -> None:
        self._authorize(token)
        record = await self._get_record(image_id)

        try:
            for path in (record.original_image_path, record.processed_image_path):
                if path:
                    await self.blobs.delete(path)
        except OSError as e:
            logger.error("image.delete_failed", image_id=image_id, error=str(e))
            raise InternalError(f"Could not delete the image files: {e}")

        await self.db.delete(record)
        await self.db.commit()
        logger.info("image.deleted", image_id=image_id)

    async def set_error(self, token: Optional[str], image_id: int) -> ImageRecord:
        self._authorize(token)
        record = await self._get_record(image_id)
        record.status = STATUS_ERROR
        record.processed_at = utcnow()
        await self.db.commit()
        logger.info("image.marked_error", image_id=image_id)
        return record


def get_image_workflow(
    db: AsyncSession = Depends(get_db),
    blobs: BlobStorage = Depends(get_blob_storage),
    tokens: TokenService = Depends(get_token_service),
) -> ImageWorkflow:
    return ImageWorkflow(db, blobs, tokens)
