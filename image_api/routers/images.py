from typing import List, Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile, status

from image_api.core.security import token_header
from image_api.schemas.image import ImageIn, ImageOut
from image_api.services.images import ImageWorkflow, get_image_workflow

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("", response_model=List[ImageOut])
async def get_images(
    user_id: Optional[int] = Query(default=None, alias="userId"),
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    return await workflow.list_images(token, user_id)


@router.get("/user/{user_id}", response_model=List[ImageOut])
async def get_images_by_user(
    user_id: int,
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    return await workflow.list_images_for_user(token, user_id)


@router.get("/{image_id}", response_model=ImageOut)
async def get_image(
    image_id: int,
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    return await workflow.get_image(token, image_id)


@router.post("", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def create_image(
    image: ImageIn,
    response: Response,
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    record = await workflow.create_image(token, image)
    response.headers["Location"] = f"/api/images/{record.image_id}"
    return record


@router.put("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_image(
    image_id: int,
    image: ImageIn,
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    await workflow.update_image(token, image_id, image)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/pending", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def create_pending_image(
    response: Response,
    user_id: int = Form(..., alias="userId"),
    scale_option: str = Form(default="", alias="scaleOption"),
    metadata: str = Form(default=""),
    original_file: Optional[UploadFile] = File(default=None, alias="originalFile"),
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    record = await workflow.create_pending_image(token, user_id, scale_option, metadata, original_file)
    response.headers["Location"] = f"/api/images/{record.image_id}"
    return record


@router.post("/upload", response_model=ImageOut)
async def upload_processed_image(
    image_id: int = Form(..., alias="imageId"),
    user_id: Optional[int] = Form(default=None, alias="userId"),
    scale_option: Optional[str] = Form(default=None, alias="scaleOption"),
    metadata: Optional[str] = Form(default=None),
    original_file: Optional[UploadFile] = File(default=None, alias="originalFile"),
    processed_file: Optional[UploadFile] = File(default=None, alias="processedFile"),
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    # userId and originalFile are part of the form contract but carry no meaning here
    if original_file is not None:
        logger.debug("image.upload_original_ignored", image_id=image_id, user_id=user_id)
    return await workflow.upload_processed_image(token, image_id, processed_file, scale_option, metadata)


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image(
    image_id: int,
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    await workflow.delete_image(token, image_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/set-error", response_model=ImageOut)
async def set_error(
    image_id: int = Body(...),
    token: Optional[str] = Depends(token_header),
    workflow: ImageWorkflow = Depends(get_image_workflow),
):
    return await workflow.set_error(token, image_id)
