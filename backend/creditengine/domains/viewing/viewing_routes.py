"""Viewing sessions: start on play, complete once the watch threshold is crossed."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...deps import get_current_user
from ...models.user import User
from ...platform.database import get_db
from ...schemas.viewing import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    StartSessionResponse,
    ViewingSessionResponse,
)
from ...services.errors import CreditEngineError
from ...services.viewing_session_service import complete_session, start_session

logger = logging.getLogger("shipshow.viewing_routes")

router = APIRouter(tags=["Viewing"])


@router.post("/videos/{video_id}/viewing-sessions", response_model=StartSessionResponse)
def start_viewing_session(
    video_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        started = start_session(db, current_user.id, video_id)
    except CreditEngineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return StartSessionResponse(
        session=ViewingSessionResponse.model_validate(started.session),
        reused=started.reused,
    )


@router.post("/viewing-sessions/{session_id}/complete", response_model=CompleteSessionResponse)
def complete_viewing_session(
    session_id: str,
    data: CompleteSessionRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = data or CompleteSessionRequest()
    try:
        result = complete_session(
            db,
            session_id,
            user_id=current_user.id,
            watched_seconds=data.watched_seconds,
            reached_end=data.reached_end,
        )
    except CreditEngineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return CompleteSessionResponse(
        credit_awarded=result.credit_awarded,
        new_balance=result.new_balance,
        session=ViewingSessionResponse.model_validate(result.session),
    )
