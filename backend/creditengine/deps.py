"""
Shared dependencies. Resolves the authenticated subject to a credit account.
"""

from typing import Any

from fastapi import Depends
from sqlalchemy.orm import Session

from .models.user import User
from .platform.database import get_db
from .platform.security import get_current_subject
from .services.credit_ledger_service import ensure_user


def get_current_user(
    claims: dict[str, Any] = Depends(get_current_subject),
    db: Session = Depends(get_db),
) -> User:
    return ensure_user(db, str(claims["sub"]).strip(), email=claims.get("email"))


__all__ = ["get_current_user"]
