import os
import shutil
import tempfile
# Override DATABASE_URL before any app imports to avoid PostgreSQL driver requirement.
# File-backed so threads in the concurrency tests share one database.
if "SHIPSHOW_TEST_DB_DIR" not in os.environ:
    os.environ["SHIPSHOW_TEST_DB_DIR"] = tempfile.mkdtemp(prefix="shipshow-credits-tests-")
_TEST_DB_DIR = os.environ["SHIPSHOW_TEST_DB_DIR"]
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test_credits.db')}"
os.environ.pop("DATABASE_PUBLIC_URL", None)
os.environ["DEPLOYMENT_ENV"] = "test"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["AUTH_JWT_ALGORITHM"] = "HS256"
os.environ["STRIPE_API_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["MVP_DISABLE_STRIPE"] = "false"
os.environ.pop("SENTRY_DSN", None)

import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from creditengine.platform.config import settings
from creditengine.platform.database import Base, SessionLocal, engine, get_db
from creditengine.main import app
from creditengine.platform.middleware import _rate_limit_store
from creditengine.models.credit_transaction import TransactionType
from creditengine.models.user import User
from creditengine.models.video import Video
from creditengine.services.credit_ledger_service import award


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def _test_database_dir():
    yield _TEST_DB_DIR
    engine.dispose()
    shutil.rmtree(_TEST_DB_DIR, ignore_errors=True)


@pytest.fixture(scope="function")
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()


# ---------------------------------------------------------------------------
# Factory helpers: create test entities quickly and consistently
# ---------------------------------------------------------------------------

def _unique_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


def make_token(sub: str, expires_in: int = 3600, secret: str | None = None, **claims) -> str:
    """Sign an access token the way the identity provider would."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, secret or settings.AUTH_JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str | None = None) -> tuple[dict, str]:
    """Return (headers_dict, user_id) for a bearer-authenticated caller."""
    user_id = user_id or _unique_id("user")
    return {"Authorization": f"Bearer {make_token(user_id)}"}, user_id


def create_user(db, user_id: str | None = None, email: str | None = None) -> User:
    user = User(id=user_id or _unique_id("user"), email=email, credits_balance=0, lifetime_earned=0)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def fund_user(db, user_id: str, amount: int) -> int:
    """Give a user credits through the ledger so balance and history stay in step."""
    result = award(
        db,
        user_id=user_id,
        amount=amount,
        type=TransactionType.PURCHASE,
        reason="test funding",
        event_key=f"test:fund:{uuid.uuid4().hex}",
    )
    return result.balance


def create_video(db, video_id: str | None = None, duration_s: int | None = 40, **overrides) -> Video:
    video = Video(
        id=video_id or _unique_id("video"),
        title=overrides.pop("title", "Demo of a side project"),
        duration_s=duration_s,
        **overrides,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def stripe_signature(payload: str, secret: str | None = None, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for `payload`."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new((secret or settings.STRIPE_WEBHOOK_SECRET).encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def payment_intent_payload(
    user_id: str,
    package_id: str = "starter",
    intent_id: str | None = None,
    amount: int = 500,
    credits: int | str | None = 100,
    bonus: int | str | None = 0,
    total_credits: int | str | None = 100,
    status: str = "succeeded",
    currency: str = "usd",
) -> dict:
    metadata = {"userId": user_id, "packageId": package_id}
    if credits is not None:
        metadata["credits"] = str(credits)
    if bonus is not None:
        metadata["bonus"] = str(bonus)
    if total_credits is not None:
        metadata["totalCredits"] = str(total_credits)
    return {
        "id": intent_id or _unique_id("pi"),
        "object": "payment_intent",
        "amount": amount,
        "amount_received": amount if status == "succeeded" else 0,
        "currency": currency,
        "status": status,
        "metadata": metadata,
    }


def stripe_event(intent: dict, event_type: str = "payment_intent.succeeded") -> str:
    return json.dumps(
        {
            "id": _unique_id("evt"),
            "object": "event",
            "type": event_type,
            "data": {"object": intent},
        }
    )
