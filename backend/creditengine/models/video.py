import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class VideoStatus(str, enum.Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    REJECTED = "rejected"


class ModerationState(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    LIMITED = "limited"
    REJECTED = "rejected"


class Video(Base):
    """Catalog projection of a hosted demo video (upload and playback live elsewhere)."""

    __tablename__ = "videos"

    id = Column(String, primary_key=True, index=True)
    creator_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    title = Column(String, nullable=False)
    status = Column(String, nullable=False, default=VideoStatus.READY.value)
    moderation_state = Column(String, nullable=False, default=ModerationState.APPROVED.value)
    is_active = Column(Boolean, nullable=False, default=True)
    duration_s = Column(Integer, nullable=True)
    total_views = Column(Integer, nullable=False, default=0)
    boost_amount = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    viewing_sessions = relationship("ViewingSession", back_populates="video")

    @property
    def is_playable(self) -> bool:
        return (
            bool(self.is_active)
            and self.status == VideoStatus.READY.value
            and self.moderation_state != ModerationState.REJECTED.value
        )
