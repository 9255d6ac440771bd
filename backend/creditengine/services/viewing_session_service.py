"""Viewing sessions: `started -> completed`, with at most one view award per session.

Start is find-or-create over a partial unique index on open sessions. Completion
is a conditional UPDATE on `state = 'started'`; only the caller whose update
matched a row goes on to settle the `view:<session_id>` ledger event, and both
happen in the same database transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.credit_transaction import CreditTransaction, TransactionType
from ..models.user import User
from ..models.video import Video
from ..models.viewing_session import SessionState, ViewingSession
from ..platform.config import settings
from . import award_policy
from .credit_ledger_service import append_credit_transaction, current_balance, lock_user
from .errors import AlreadyViewedTodayError, NotFoundError, ThresholdNotReachedError
from .video_catalog import get_video

logger = logging.getLogger("shipshow.viewing_sessions")


@dataclass
class StartedSession:
    session: ViewingSession
    reused: bool


@dataclass
class CompletionResult:
    credit_awarded: bool
    new_balance: int
    session: ViewingSession


def view_event_key(session_id: str) -> str:
    return f"view:{session_id}"


def _utc_day_start() -> datetime:
    return datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def has_view_award_today(db: Session, user_id: str, video_id: str) -> bool:
    row = (
        db.query(CreditTransaction.id)
        .filter(
            CreditTransaction.user_id == user_id,
            CreditTransaction.video_id == video_id,
            CreditTransaction.type == TransactionType.EARNED_BY_VIEW.value,
            CreditTransaction.created_at >= _utc_day_start(),
        )
        .first()
    )
    return row is not None


def _open_session(db: Session, user_id: str, video_id: str) -> ViewingSession | None:
    return (
        db.query(ViewingSession)
        .filter(
            ViewingSession.user_id == user_id,
            ViewingSession.video_id == video_id,
            ViewingSession.state == SessionState.STARTED.value,
        )
        .first()
    )


def start_session(db: Session, user_id: str, video_id: str) -> StartedSession:
    video = get_video(db, video_id)
    if video is None or not video.playable:
        raise NotFoundError(f"Video {video_id} not found")
    if db.get(User, user_id) is None:
        raise NotFoundError(f"User {user_id} not found")

    existing = _open_session(db, user_id, video_id)
    if existing is not None:
        return StartedSession(session=existing, reused=True)

    if settings.VIEW_ONE_AWARD_PER_VIDEO_PER_DAY and has_view_award_today(db, user_id, video_id):
        raise AlreadyViewedTodayError("Video already viewed today")

    session = ViewingSession(user_id=user_id, video_id=video_id, state=SessionState.STARTED.value)
    db.add(session)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race on the open-session index; hand back the winner's session
        db.rollback()
        existing = _open_session(db, user_id, video_id)
        if existing is None:
            raise
        return StartedSession(session=existing, reused=True)
    db.refresh(session)
    logger.info("Viewing session started session_id=%s user_id=%s video_id=%s", session.id, user_id, video_id)
    return StartedSession(session=session, reused=False)


def complete_session(
    db: Session,
    session_id: str,
    *,
    user_id: Optional[str] = None,
    watched_seconds: Optional[float] = None,
    reached_end: bool = False,
) -> CompletionResult:
    """Complete a session and award the view credit at most once.

    Replays and losing concurrent completions return `credit_awarded=False`
    with the current balance. When the client reports `watched_seconds` that
    cross neither threshold (and the video did not reach its end) the call
    raises ThresholdNotReachedError and the session stays open.
    """
    session = db.query(ViewingSession).filter(ViewingSession.id == session_id).first()
    if session is None or (user_id is not None and session.user_id != user_id):
        raise NotFoundError(f"Viewing session {session_id} not found")

    owner_id = session.user_id
    video_id = session.video_id
    if session.is_completed:
        return CompletionResult(credit_awarded=False, new_balance=current_balance(db, owner_id), session=session)

    video = get_video(db, video_id)
    if watched_seconds is not None and not reached_end:
        duration = video.duration_s if video else None
        if not award_policy.qualifies_for_award(watched_seconds, duration):
            raise ThresholdNotReachedError(
                f"Watched {watched_seconds:g}s; at least {settings.VIEW_MIN_WATCH_SECONDS}s "
                f"or {int(settings.VIEW_MIN_WATCH_FRACTION * 100)}% of the video is required"
            )

    event_key = view_event_key(session_id)
    awarded = False
    try:
        transition = db.execute(
            update(ViewingSession)
            .where(ViewingSession.id == session_id, ViewingSession.state == SessionState.STARTED.value)
            .values(
                state=SessionState.COMPLETED.value,
                completed_at=datetime.now(timezone.utc),
                watched_seconds=None if watched_seconds is None else round(watched_seconds),
            )
            .execution_options(synchronize_session=False)
        )
        if transition.rowcount != 1:
            db.rollback()
            logger.info("Viewing session already completed session_id=%s", session_id)
            db.refresh(session)
            return CompletionResult(credit_awarded=False, new_balance=current_balance(db, owner_id), session=session)

        if settings.VIEW_ONE_AWARD_PER_VIDEO_PER_DAY and has_view_award_today(db, owner_id, video_id):
            logger.info(
                "Viewing session completed without award (daily limit) session_id=%s video_id=%s",
                session_id,
                video_id,
            )
        else:
            user = lock_user(db, owner_id)
            _, awarded = append_credit_transaction(
                db,
                user=user,
                amount=award_policy.view_award_amount(),
                type=TransactionType.EARNED_BY_VIEW,
                reason=award_policy.view_award_reason(event_key, video_id),
                event_key=event_key,
                video_id=video_id,
                metadata={"session_id": session_id, "watched_seconds": watched_seconds, "reached_end": reached_end},
            )
            if awarded:
                db.execute(
                    update(Video)
                    .where(Video.id == video_id)
                    .values(total_views=Video.total_views + 1)
                    .execution_options(synchronize_session=False)
                )
                db.execute(
                    update(ViewingSession)
                    .where(ViewingSession.id == session_id)
                    .values(credit_awarded=True)
                    .execution_options(synchronize_session=False)
                )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("View award already settled by a concurrent completion event_key=%s", event_key)
        db.refresh(session)
        return CompletionResult(credit_awarded=False, new_balance=current_balance(db, owner_id), session=session)
    except Exception:
        db.rollback()
        raise

    db.refresh(session)
    new_balance = current_balance(db, owner_id)
    if awarded:
        logger.info(
            "View credit awarded session_id=%s user_id=%s video_id=%s balance=%s",
            session_id,
            owner_id,
            video_id,
            new_balance,
        )
    return CompletionResult(credit_awarded=awarded, new_balance=new_balance, session=session)
