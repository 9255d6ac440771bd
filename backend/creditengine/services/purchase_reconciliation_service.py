"""Turn a provider payment confirmation into exactly one purchase credit.

Confirmations are untrusted: package terms are re-derived from the server-side
package table and every declared figure must agree with it before anything is
written. The provider transaction id becomes the `stripe:pi:<id>` event key, so
webhook redeliveries and the client's purchase-complete call converge on a
single ledger row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.credit_transaction import TransactionType
from ..platform.config import settings
from . import award_policy
from .credit_ledger_service import APPLIED, award, find_transaction_by_event_key
from .credit_packages import resolve_package
from .errors import PurchaseValidationError

logger = logging.getLogger("shipshow.purchases")


@dataclass(frozen=True)
class PaymentConfirmation:
    provider_transaction_id: str
    user_id: str
    package_id: str
    total_credits: Optional[int]
    amount_charged: Optional[int]
    credits: Optional[int] = None
    bonus: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class PurchaseResult:
    status: str
    credits: int
    balance: int
    package_id: str


def purchase_event_key(provider_transaction_id: str) -> str:
    return f"stripe:pi:{provider_transaction_id}"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def confirmation_from_payment_intent(intent: dict[str, Any]) -> PaymentConfirmation:
    """Build a confirmation from a Stripe PaymentIntent payload (metadata written at checkout)."""
    metadata = intent.get("metadata") or {}
    return PaymentConfirmation(
        provider_transaction_id=str(intent.get("id") or ""),
        user_id=str(metadata.get("userId") or ""),
        package_id=str(metadata.get("packageId") or ""),
        credits=_optional_int(metadata.get("credits")),
        bonus=_optional_int(metadata.get("bonus")),
        total_credits=_optional_int(metadata.get("totalCredits")),
        amount_charged=_optional_int(intent.get("amount_received") or intent.get("amount")),
        currency=(intent.get("currency") or None),
    )


def _reject(confirmation: PaymentConfirmation, code: str, message: str) -> PurchaseValidationError:
    logger.warning(
        "Purchase confirmation rejected code=%s provider_transaction_id=%s user_id=%s package_id=%s "
        "declared_total=%s amount_charged=%s",
        code,
        confirmation.provider_transaction_id,
        confirmation.user_id,
        confirmation.package_id,
        confirmation.total_credits,
        confirmation.amount_charged,
    )
    return PurchaseValidationError(code, message)


def reconcile_purchase(db: Session, confirmation: PaymentConfirmation) -> PurchaseResult:
    if not confirmation.provider_transaction_id or not confirmation.user_id or not confirmation.package_id:
        raise _reject(confirmation, "missing_fields", "Payment confirmation is missing required fields")
    if confirmation.total_credits is None or confirmation.amount_charged is None:
        raise _reject(confirmation, "missing_fields", "Payment confirmation is missing credit or amount figures")
    if confirmation.currency and confirmation.currency.lower() != settings.PAYMENT_CURRENCY.lower():
        raise _reject(confirmation, "currency_mismatch", "Payment currency does not match")

    package = resolve_package(confirmation.package_id)
    if package is None:
        raise _reject(confirmation, "unknown_package", "Invalid package in payment confirmation")
    if confirmation.amount_charged != package.price:
        raise _reject(confirmation, "amount_mismatch", "Payment amount validation failed")

    expected_total = award_policy.purchase_award_amount(package)
    if confirmation.total_credits != expected_total:
        raise _reject(confirmation, "credits_mismatch", "Declared credits do not match the package")
    if confirmation.credits is not None and confirmation.credits != package.credits:
        raise _reject(confirmation, "credits_mismatch", "Declared credits do not match the package")
    if confirmation.bonus is not None and confirmation.bonus != package.bonus:
        raise _reject(confirmation, "credits_mismatch", "Declared bonus does not match the package")

    event_key = purchase_event_key(confirmation.provider_transaction_id)
    existing = find_transaction_by_event_key(db, event_key)
    if existing is not None and existing.user_id != confirmation.user_id:
        raise _reject(confirmation, "owner_mismatch", "Payment was already settled for another user")

    result = award(
        db,
        user_id=confirmation.user_id,
        amount=expected_total,
        type=TransactionType.PURCHASE,
        reason=award_policy.purchase_reason(event_key, package.id),
        event_key=event_key,
        metadata={
            "package_id": package.id,
            "credits": package.credits,
            "bonus": package.bonus,
            "amount_charged": confirmation.amount_charged,
            "currency": confirmation.currency or settings.PAYMENT_CURRENCY,
        },
    )
    if result.status == APPLIED:
        logger.info(
            "Purchase credited provider_transaction_id=%s user_id=%s package_id=%s credits=%s",
            confirmation.provider_transaction_id,
            confirmation.user_id,
            package.id,
            expected_total,
        )
    return PurchaseResult(
        status=result.status,
        credits=expected_total,
        balance=result.balance,
        package_id=package.id,
    )
