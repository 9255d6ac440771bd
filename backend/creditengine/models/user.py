from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class User(Base):
    """Credit holder keyed by the identity provider's stable subject id."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("credits_balance >= 0", name="ck_users_credits_balance_non_negative"),
    )

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True)
    # Cached projection of sum(credit_transactions.amount); only the ledger service writes it.
    credits_balance = Column(Integer, nullable=False, default=0)
    lifetime_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    credit_transactions = relationship("CreditTransaction", back_populates="user")
    viewing_sessions = relationship("ViewingSession", back_populates="user")
