from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.credit_transaction import TransactionType
from ..models.video import Video
from . import award_policy
from .credit_ledger_service import (
    ALREADY_APPLIED,
    APPLIED,
    LedgerResult,
    append_credit_transaction,
    current_balance,
    find_transaction_by_event_key,
    lock_user,
)
from .errors import InvalidBoostError, NotFoundError

logger = logging.getLogger("shipshow.boosts")


@dataclass
class BoostResult:
    ledger: LedgerResult
    video_boost_amount: int


def boost_event_key(user_id: str, video_id: str, idempotency_key: str) -> str:
    return f"boost:{user_id}:{video_id}:{idempotency_key}"


def _ensure_same_boost(entry, video_id: str, amount: int) -> None:
    if entry.video_id != video_id or int(entry.amount) != -amount:
        logger.warning(
            "Boost idempotency key reused event_key=%s video_id=%s amount=%s", entry.event_key, video_id, amount
        )
        raise InvalidBoostError("idempotency key reused for a different boost")


def _boost_total(db: Session, video_id: str) -> int:
    video = db.query(Video).filter(Video.id == video_id).first()
    return int(video.boost_amount or 0) if video else 0


def boost_video(
    db: Session,
    user_id: str,
    video_id: str,
    amount: int,
    idempotency_key: str | None = None,
) -> BoostResult:
    """Spend credits on a video's visibility; the debit and the boost land together."""
    amount = award_policy.validate_boost_amount(amount)
    video = db.query(Video).filter(Video.id == video_id).first()
    if video is None:
        raise NotFoundError(f"Video {video_id} not found")

    event_key = boost_event_key(user_id, video_id, idempotency_key) if idempotency_key else None
    try:
        user = lock_user(db, user_id)
        entry, created = append_credit_transaction(
            db,
            user=user,
            amount=-amount,
            type=TransactionType.SPEND_BOOST,
            reason=award_policy.boost_reason(video_id, event_key),
            event_key=event_key,
            video_id=video_id,
            metadata={"boost_amount": amount},
        )
        if not created:
            _ensure_same_boost(entry, video_id, amount)
        else:
            db.execute(
                update(Video)
                .where(Video.id == video_id)
                .values(boost_amount=Video.boost_amount + amount)
                .execution_options(synchronize_session=False)
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_transaction_by_event_key(db, event_key) if event_key else None
        if existing is None:
            raise
        _ensure_same_boost(existing, video_id, amount)
        ledger = LedgerResult(ALREADY_APPLIED, current_balance(db, user_id), existing)
        return BoostResult(ledger=ledger, video_boost_amount=_boost_total(db, video_id))
    except Exception:
        db.rollback()
        raise

    status = APPLIED if created else ALREADY_APPLIED
    balance = int(entry.balance_after) if created else current_balance(db, user_id)
    if created:
        logger.info("Video boosted user_id=%s video_id=%s amount=%s balance=%s", user_id, video_id, amount, balance)
    db.expire_all()
    return BoostResult(ledger=LedgerResult(status, balance, entry), video_boost_amount=_boost_total(db, video_id))
