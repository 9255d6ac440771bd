import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class TransactionType(str, enum.Enum):
    EARNED_BY_VIEW = "earned-by-view"
    PURCHASE = "purchase"
    SPEND_BOOST = "spend-boost"


# Types that also count towards users.lifetime_earned.
EARNING_TYPES = frozenset({TransactionType.EARNED_BY_VIEW, TransactionType.PURCHASE})


class CreditTransaction(Base):
    """Immutable ledger row. Rows are only ever inserted."""

    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String(50), nullable=False)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    event_key = Column(String, nullable=True, unique=True, index=True)
    video_id = Column(String, ForeignKey("videos.id"), index=True, nullable=True)
    entry_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("User", back_populates="credit_transactions")
    video = relationship("Video")
