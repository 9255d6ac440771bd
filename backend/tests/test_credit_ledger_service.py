"""Service tests for the credit ledger: award, spend, balance and audit."""

import pytest
from sqlalchemy import func

from creditengine.models.credit_transaction import CreditTransaction, TransactionType
from creditengine.models.user import User
from creditengine.services import credit_ledger_service as ledger
from creditengine.services.errors import InsufficientCreditsError, NotFoundError
from tests.conftest import create_user, create_video, fund_user


def _ledger_sum(db, user_id):
    return db.query(func.coalesce(func.sum(CreditTransaction.amount), 0)).filter(
        CreditTransaction.user_id == user_id
    ).scalar()


# ---------------------------------------------------------------------------
# award
# ---------------------------------------------------------------------------


def test_award_applies_once_and_records_transaction(db):
    user = create_user(db)
    result = ledger.award(
        db,
        user_id=user.id,
        amount=5,
        type=TransactionType.EARNED_BY_VIEW,
        reason="watched",
        event_key="view:s1",
    )
    assert result.status == ledger.APPLIED
    assert result.applied is True
    assert result.balance == 5
    assert result.transaction.amount == 5
    assert result.transaction.balance_after == 5
    assert result.transaction.event_key == "view:s1"
    assert result.transaction.type == "earned-by-view"

    snapshot = ledger.get_balance(db, user.id)
    assert snapshot.balance == 5
    assert snapshot.lifetime_earned == 5


def test_award_duplicate_event_key_is_already_applied(db):
    user = create_user(db)
    first = ledger.award(db, user_id=user.id, amount=3, type="purchase", reason="r", event_key="stripe:pi:1")
    second = ledger.award(db, user_id=user.id, amount=3, type="purchase", reason="r", event_key="stripe:pi:1")
    assert first.status == ledger.APPLIED
    assert second.status == ledger.ALREADY_APPLIED
    assert second.balance == 3
    assert second.transaction.id == first.transaction.id
    assert db.query(CreditTransaction).filter(CreditTransaction.user_id == user.id).count() == 1


def test_award_unknown_user_raises_not_found(db):
    with pytest.raises(NotFoundError):
        ledger.award(db, user_id="ghost", amount=1, type="purchase", reason="r", event_key="k1")
    assert db.query(CreditTransaction).count() == 0


@pytest.mark.parametrize("amount", [0, -1])
def test_award_requires_positive_amount(db, amount):
    user = create_user(db)
    with pytest.raises(ValueError):
        ledger.award(db, user_id=user.id, amount=amount, type="purchase", reason="r", event_key="k")


def test_award_requires_event_key(db):
    user = create_user(db)
    with pytest.raises(ValueError):
        ledger.award(db, user_id=user.id, amount=1, type="purchase", reason="r", event_key="")


# ---------------------------------------------------------------------------
# spend
# ---------------------------------------------------------------------------


def test_spend_debits_and_does_not_touch_lifetime_earned(db):
    user = create_user(db)
    video = create_video(db)
    fund_user(db, user.id, 50)
    result = ledger.spend(
        db,
        user_id=user.id,
        amount=20,
        type=TransactionType.SPEND_BOOST,
        reason="boost",
        video_id=video.id,
    )
    assert result.status == ledger.APPLIED
    assert result.balance == 30
    assert result.transaction.amount == -20
    assert result.transaction.video_id == video.id
    snapshot = ledger.get_balance(db, user.id)
    assert snapshot.balance == 30
    assert snapshot.lifetime_earned == 50


def test_spend_insufficient_balance_leaves_balance_untouched(db):
    user = create_user(db)
    fund_user(db, user.id, 5)
    with pytest.raises(InsufficientCreditsError) as exc_info:
        ledger.spend(db, user_id=user.id, amount=6, type="spend-boost", reason="boost")
    assert exc_info.value.balance == 5
    assert exc_info.value.required == 6
    assert ledger.get_balance(db, user.id).balance == 5
    assert db.query(CreditTransaction).filter(CreditTransaction.amount < 0).count() == 0


def test_spend_exact_balance_reaches_zero(db):
    user = create_user(db)
    fund_user(db, user.id, 10)
    result = ledger.spend(db, user_id=user.id, amount=10, type="spend-boost", reason="boost")
    assert result.balance == 0


def test_spend_with_event_key_is_idempotent(db):
    user = create_user(db)
    fund_user(db, user.id, 100)
    first = ledger.spend(db, user_id=user.id, amount=10, type="spend-boost", reason="b", event_key="boost:x")
    second = ledger.spend(db, user_id=user.id, amount=10, type="spend-boost", reason="b", event_key="boost:x")
    assert first.status == ledger.APPLIED
    assert second.status == ledger.ALREADY_APPLIED
    assert ledger.get_balance(db, user.id).balance == 90


def test_append_rejects_unknown_transaction_type(db):
    user = create_user(db)
    with pytest.raises(ValueError):
        ledger.append_credit_transaction(db, user=user, amount=1, type="gift", reason="r")
    db.rollback()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_get_balance_unknown_user(db):
    with pytest.raises(NotFoundError):
        ledger.get_balance(db, "nobody")


def test_list_transactions_newest_first_and_limited(db):
    user = create_user(db)
    for i in range(5):
        ledger.award(db, user_id=user.id, amount=i + 1, type="purchase", reason=f"r{i}", event_key=f"k{i}")
    entries = ledger.list_transactions(db, user.id, limit=3)
    assert [e.amount for e in entries] == [5, 4, 3]
    assert entries[0].balance_after == 15


def test_list_transactions_only_returns_own_rows(db):
    alice = create_user(db)
    bob = create_user(db)
    fund_user(db, alice.id, 10)
    fund_user(db, bob.id, 20)
    assert [e.amount for e in ledger.list_transactions(db, alice.id)] == [10]


def test_ensure_user_creates_once(db):
    first = ledger.ensure_user(db, "sub_123", email="a@example.com")
    second = ledger.ensure_user(db, "sub_123")
    assert first.id == second.id == "sub_123"
    assert second.credits_balance == 0
    assert db.query(User).filter(User.id == "sub_123").count() == 1


# ---------------------------------------------------------------------------
# Ledger / balance consistency
# ---------------------------------------------------------------------------


def test_mixed_operations_keep_balance_equal_to_ledger_sum(db):
    user = create_user(db)
    video = create_video(db)
    ledger.award(db, user_id=user.id, amount=100, type="purchase", reason="p", event_key="stripe:pi:a")
    ledger.award(db, user_id=user.id, amount=1, type="earned-by-view", reason="v", event_key="view:a", video_id=video.id)
    ledger.spend(db, user_id=user.id, amount=40, type="spend-boost", reason="b", video_id=video.id)
    ledger.award(db, user_id=user.id, amount=100, type="purchase", reason="p", event_key="stripe:pi:a")
    with pytest.raises(InsufficientCreditsError):
        ledger.spend(db, user_id=user.id, amount=1000, type="spend-boost", reason="b")

    assert ledger.get_balance(db, user.id).balance == 61
    assert _ledger_sum(db, user.id) == 61
    audit = ledger.audit_user_ledger(db, user.id)
    assert audit.is_consistent
    assert audit.transaction_count == 3
    assert audit.last_balance_after == 61


def test_audit_reports_drift(db):
    user = create_user(db)
    fund_user(db, user.id, 10)
    db.query(User).filter(User.id == user.id).update({"credits_balance": 12})
    db.commit()
    audit = ledger.audit_user_ledger(db, user.id)
    assert audit.drift == 2
    assert audit.is_consistent is False


def test_audit_empty_ledger_is_consistent(db):
    user = create_user(db)
    audit = ledger.audit_user_ledger(db, user.id)
    assert audit.is_consistent
    assert audit.transaction_count == 0
    assert audit.last_balance_after is None
