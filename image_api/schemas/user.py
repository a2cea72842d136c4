from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from image_api.schemas.image import ImageOut


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegisterRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    token: str
    user_id: int


class UserCreate(CamelModel):
    username: str = ""
    email: str
    password: str


class UserUpdate(CamelModel):
    user_id: int
    username: str = ""
    email: str
    password: Optional[str] = None


class UserResponse(CamelModel):
    user_id: int
    username: str
    email: str
    registered_at: datetime
    images: List[ImageOut] = []
