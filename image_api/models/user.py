from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from image_api.core.database import Base
from image_api.core.utils import utcnow


class User(Base):
    __tablename__ = "users"
    user_id = Column("id", Integer, primary_key=True, index=True)
    username = Column(String(128), nullable=False, default="")
    email = Column(String(256), unique=True, index=True, nullable=False)
    password_hash = Column(String(512), nullable=False)
    registered_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    images = relationship("ImageRecord", back_populates="owner", lazy="selectin")
