from .user import User
from .video import ModerationState, Video, VideoStatus
from .viewing_session import SessionState, ViewingSession
from .credit_transaction import EARNING_TYPES, CreditTransaction, TransactionType

__all__ = [
    "User",
    "Video",
    "VideoStatus",
    "ModerationState",
    "ViewingSession",
    "SessionState",
    "CreditTransaction",
    "TransactionType",
    "EARNING_TYPES",
]
