from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ViewingSessionResponse(BaseModel):
    id: str
    user_id: str
    video_id: str
    state: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    watched_seconds: Optional[int] = None
    credit_awarded: bool = False

    model_config = {"from_attributes": True}


class StartSessionResponse(BaseModel):
    session: ViewingSessionResponse
    reused: bool


class CompleteSessionRequest(BaseModel):
    watched_seconds: Optional[float] = Field(default=None, ge=0, le=86400)
    reached_end: bool = False


class CompleteSessionResponse(BaseModel):
    credit_awarded: bool
    new_balance: int
    session: ViewingSessionResponse
