from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from image_api.core.database import Base
from image_api.core.utils import utcnow

STATUS_PENDING = "pendiente"
STATUS_PROCESSED = "procesada"
STATUS_ERROR = "error"
STATUSES = (STATUS_PENDING, STATUS_PROCESSED, STATUS_ERROR)


class ImageRecord(Base):
    __tablename__ = "images"
    image_id = Column("id", Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    original_image_path = Column(String(512), nullable=False, default="")
    processed_image_path = Column(String(512), nullable=False, default="")
    status = Column(String(32), nullable=False, default=STATUS_PENDING)  # pendiente | procesada | error
    # "metadata" is reserved on declarative classes
    image_metadata = Column("metadata", Text, nullable=False, default="")
    scale_option = Column(String(64), nullable=False, default="")
    processed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner = relationship("User", back_populates="images")
