"""Append-only credit ledger and the user balance projection it maintains.

Every balance change goes through `append_credit_transaction`, which applies
the delta with a single conditional UPDATE (never read-then-write) and inserts
the matching ledger row in the caller's transaction. `award` and `spend` wrap
that in one committed unit; callers that need to change other rows in the same
unit (session completion, boosts) call the building block directly and commit
themselves.

Event keys are unique in `credit_transactions`, so a duplicate delivery either
finds the settled row up front or loses the insert race with an IntegrityError;
both are reported as `already_applied`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.credit_transaction import EARNING_TYPES, CreditTransaction, TransactionType
from ..models.user import User
from .errors import InsufficientCreditsError, NotFoundError

logger = logging.getLogger("shipshow.credit_ledger")

APPLIED = "applied"
ALREADY_APPLIED = "already_applied"


@dataclass
class LedgerResult:
    status: str
    balance: int
    transaction: Optional[CreditTransaction] = None

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


@dataclass(frozen=True)
class BalanceSnapshot:
    balance: int
    lifetime_earned: int


@dataclass(frozen=True)
class LedgerAudit:
    user_id: str
    balance: int
    ledger_sum: int
    transaction_count: int
    last_balance_after: Optional[int]

    @property
    def drift(self) -> int:
        return self.balance - self.ledger_sum

    @property
    def is_consistent(self) -> bool:
        if self.drift != 0:
            return False
        if self.last_balance_after is None:
            return self.balance == 0
        return self.last_balance_after == self.balance


def find_transaction_by_event_key(db: Session, event_key: str) -> CreditTransaction | None:
    return db.query(CreditTransaction).filter(CreditTransaction.event_key == event_key).first()


def lock_user(db: Session, user_id: str) -> User:
    """Load the user row with a row lock (no-op on SQLite, which serializes writers instead)."""
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def current_balance(db: Session, user_id: str) -> int:
    balance = db.execute(select(User.credits_balance).where(User.id == user_id)).scalar()
    return int(balance or 0)


def ensure_user(db: Session, user_id: str, email: str | None = None) -> User:
    """Get-or-create the credit holder for an authenticated subject."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is not None:
        return user
    user = User(id=user_id, email=email, credits_balance=0, lifetime_earned=0)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first contact created the row first
        db.rollback()
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise
        return user
    db.refresh(user)
    logger.info("Created credit account for user_id=%s", user_id)
    return user


def append_credit_transaction(
    db: Session,
    *,
    user: User,
    amount: int,
    type: TransactionType | str,
    reason: str,
    event_key: str | None = None,
    video_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> tuple[CreditTransaction, bool]:
    """Apply `amount` to the user's balance and record it. Flushes, never commits.

    Returns `(entry, created)`; `created` is False when `event_key` was already settled.
    """
    if event_key:
        existing = find_transaction_by_event_key(db, event_key)
        if existing:
            return existing, False

    tx_type = TransactionType(type)
    delta = int(amount)
    if delta == 0:
        raise ValueError("ledger amount must be non-zero")

    values: dict[str, Any] = {"credits_balance": User.credits_balance + delta}
    if tx_type in EARNING_TYPES and delta > 0:
        values["lifetime_earned"] = User.lifetime_earned + delta
    result = db.execute(
        update(User)
        .where(User.id == user.id, User.credits_balance + delta >= 0)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        balance = current_balance(db, user.id)
        raise InsufficientCreditsError(balance=balance, required=-delta)

    next_balance = current_balance(db, user.id)
    db.expire(user, ["credits_balance", "lifetime_earned"])

    entry = CreditTransaction(
        user_id=user.id,
        type=tx_type.value,
        amount=delta,
        balance_after=next_balance,
        reason=reason,
        event_key=event_key,
        video_id=video_id,
        entry_metadata=metadata or {},
    )
    db.add(entry)
    db.flush()
    return entry, True


def _apply(
    db: Session,
    *,
    user_id: str,
    amount: int,
    type: TransactionType | str,
    reason: str,
    event_key: str | None,
    video_id: str | None,
    metadata: dict[str, Any] | None,
) -> LedgerResult:
    try:
        user = lock_user(db, user_id)
        entry, created = append_credit_transaction(
            db,
            user=user,
            amount=amount,
            type=type,
            reason=reason,
            event_key=event_key,
            video_id=video_id,
            metadata=metadata,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_transaction_by_event_key(db, event_key) if event_key else None
        if existing is None:
            raise
        logger.info("Ledger event already settled by a concurrent writer event_key=%s", event_key)
        return LedgerResult(ALREADY_APPLIED, current_balance(db, user_id), existing)
    except Exception:
        db.rollback()
        raise

    if not created:
        logger.info("Ledger event already settled event_key=%s user_id=%s", event_key, user_id)
        return LedgerResult(ALREADY_APPLIED, current_balance(db, user_id), entry)

    logger.info(
        "Ledger entry applied user_id=%s type=%s amount=%s balance_after=%s event_key=%s",
        user_id,
        entry.type,
        entry.amount,
        entry.balance_after,
        event_key,
    )
    return LedgerResult(APPLIED, int(entry.balance_after), entry)


def award(
    db: Session,
    *,
    user_id: str,
    amount: int,
    type: TransactionType | str,
    reason: str,
    event_key: str,
    video_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> LedgerResult:
    """Credit `amount` exactly once per `event_key`, in one committed transaction."""
    if int(amount) <= 0:
        raise ValueError("award amount must be positive")
    if not event_key:
        raise ValueError("award requires an event key")
    return _apply(
        db,
        user_id=user_id,
        amount=int(amount),
        type=type,
        reason=reason,
        event_key=event_key,
        video_id=video_id,
        metadata=metadata,
    )


def spend(
    db: Session,
    *,
    user_id: str,
    amount: int,
    type: TransactionType | str,
    reason: str,
    video_id: str | None = None,
    event_key: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> LedgerResult:
    """Debit `amount`. Raises InsufficientCreditsError without touching the balance."""
    if int(amount) <= 0:
        raise ValueError("spend amount must be positive")
    return _apply(
        db,
        user_id=user_id,
        amount=-int(amount),
        type=type,
        reason=reason,
        event_key=event_key,
        video_id=video_id,
        metadata=metadata,
    )


def get_balance(db: Session, user_id: str) -> BalanceSnapshot:
    row = db.execute(
        select(User.credits_balance, User.lifetime_earned).where(User.id == user_id)
    ).first()
    if row is None:
        raise NotFoundError(f"User {user_id} not found")
    return BalanceSnapshot(balance=int(row[0] or 0), lifetime_earned=int(row[1] or 0))


def list_transactions(db: Session, user_id: str, limit: int = 50) -> list[CreditTransaction]:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.id.desc())
        .limit(max(1, min(int(limit), 200)))
        .all()
    )


def audit_user_ledger(db: Session, user_id: str) -> LedgerAudit:
    """Compare the cached balance against the ledger it is derived from."""
    snapshot = get_balance(db, user_id)
    ledger_sum, count = db.execute(
        select(func.coalesce(func.sum(CreditTransaction.amount), 0), func.count(CreditTransaction.id)).where(
            CreditTransaction.user_id == user_id
        )
    ).one()
    last_balance_after = db.execute(
        select(CreditTransaction.balance_after)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.id.desc())
        .limit(1)
    ).scalar()
    audit = LedgerAudit(
        user_id=user_id,
        balance=snapshot.balance,
        ledger_sum=int(ledger_sum or 0),
        transaction_count=int(count or 0),
        last_balance_after=None if last_balance_after is None else int(last_balance_after),
    )
    if not audit.is_consistent:
        logger.error(
            "Ledger drift detected user_id=%s balance=%s ledger_sum=%s last_balance_after=%s",
            user_id,
            audit.balance,
            audit.ledger_sum,
            audit.last_balance_after,
        )
    return audit
