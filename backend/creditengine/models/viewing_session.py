import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class SessionState(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"


class ViewingSession(Base):
    __tablename__ = "viewing_sessions"
    __table_args__ = (
        # At most one open session per (user, video); completed sessions are unconstrained.
        Index(
            "uq_viewing_sessions_open",
            "user_id",
            "video_id",
            unique=True,
            postgresql_where=text("state = 'started'"),
            sqlite_where=text("state = 'started'"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    video_id = Column(String, ForeignKey("videos.id"), index=True, nullable=False)
    state = Column(String, nullable=False, default=SessionState.STARTED.value)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    watched_seconds = Column(Integer, nullable=True)
    credit_awarded = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="viewing_sessions")
    video = relationship("Video", back_populates="viewing_sessions")

    @property
    def is_completed(self) -> bool:
        return self.state == SessionState.COMPLETED.value
