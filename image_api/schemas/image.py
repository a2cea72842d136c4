from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ImageStatus = Literal["pendiente", "procesada", "error"]


class ImageBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    user_id: int
    original_image_path: str = ""
    processed_image_path: str = ""
    status: ImageStatus
    # ORM rows expose this as image_metadata; `metadata` there is the table MetaData
    metadata: str = Field(
        default="",
        validation_alias=AliasChoices("image_metadata", "metadata"),
        serialization_alias="metadata",
    )
    scale_option: str = ""


class ImageIn(ImageBase):
    """Body of the raw create/replace endpoints."""
    image_id: Optional[int] = None
    processed_at: Optional[datetime] = None


class ImageOut(ImageBase):
    image_id: int
    processed_at: datetime
