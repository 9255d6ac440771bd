"""Credits: balance, history, package checkout and boost spending."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...components.integrations.stripe.service import StripeService
from ...deps import get_current_user
from ...models.user import User
from ...platform.config import settings
from ...platform.database import get_db
from ...schemas.credits import (
    BalanceResponse,
    BoostRequest,
    BoostResponse,
    CreditPackageResponse,
    CreditTransactionResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PurchaseCompleteRequest,
    PurchaseResponse,
)
from ...services.boost_service import boost_video
from ...services.credit_ledger_service import get_balance, list_transactions
from ...services.credit_packages import CreditPackage, credit_package_catalog, resolve_package
from ...services.errors import CreditEngineError
from ...services.purchase_reconciliation_service import (
    confirmation_from_payment_intent,
    reconcile_purchase,
)

logger = logging.getLogger("shipshow.credit_routes")

router = APIRouter(prefix="/credits", tags=["Credits"])


def _package_response(package: CreditPackage) -> CreditPackageResponse:
    return CreditPackageResponse(
        id=package.id,
        label=package.label,
        credits=package.credits,
        bonus=package.bonus,
        total_credits=package.total_credits,
        price=package.price,
        currency=settings.PAYMENT_CURRENCY.lower(),
    )


def _stripe_service() -> StripeService:
    if settings.MVP_DISABLE_STRIPE:
        raise HTTPException(status_code=503, detail="Stripe integration is disabled for MVP")
    if not settings.STRIPE_API_KEY:
        raise HTTPException(status_code=503, detail="Stripe is not configured")
    return StripeService(settings.STRIPE_API_KEY)


@router.get("/balance", response_model=BalanceResponse)
def read_balance(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        snapshot = get_balance(db, current_user.id)
    except CreditEngineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return BalanceResponse(balance=snapshot.balance, lifetime_earned=snapshot.lifetime_earned)


@router.get("/transactions", response_model=list[CreditTransactionResponse])
def read_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries = list_transactions(db, current_user.id, limit=limit)
    return [CreditTransactionResponse.model_validate(entry) for entry in entries]


@router.get("/packages", response_model=list[CreditPackageResponse])
def read_packages():
    return [_package_response(package) for package in credit_package_catalog().values()]


@router.post("/payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    data: PaymentIntentCreate,
    current_user: User = Depends(get_current_user),
):
    package = resolve_package(data.package_id)
    if package is None:
        raise HTTPException(status_code=400, detail="Invalid package selected")
    result = _stripe_service().create_payment_intent(current_user.id, package)
    if not result.get("success"):
        raise HTTPException(status_code=502, detail="Failed to create payment intent")
    return PaymentIntentResponse(
        client_secret=result["client_secret"],
        payment_intent_id=result["payment_intent_id"],
        package=_package_response(package),
    )


@router.post("/purchase-complete", response_model=PurchaseResponse)
def complete_purchase(
    data: PurchaseCompleteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    intent = _stripe_service().retrieve_payment_intent(data.payment_intent_id)
    if intent is None:
        raise HTTPException(status_code=502, detail="Unable to retrieve payment")
    if intent.get("status") != "succeeded":
        raise HTTPException(status_code=400, detail="Payment not completed")
    metadata = intent.get("metadata") or {}
    if metadata.get("userId") != current_user.id:
        logger.warning(
            "Purchase-complete ownership mismatch payment_intent_id=%s user_id=%s",
            data.payment_intent_id,
            current_user.id,
        )
        raise HTTPException(status_code=403, detail="Payment verification failed")

    try:
        result = reconcile_purchase(db, confirmation_from_payment_intent(intent))
    except CreditEngineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return PurchaseResponse(
        status=result.status,
        credits=result.credits,
        balance=result.balance,
        package_id=result.package_id,
    )


@router.post("/boost", response_model=BoostResponse)
def boost(
    data: BoostRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        result = boost_video(
            db,
            current_user.id,
            data.video_id,
            data.amount,
            idempotency_key=data.idempotency_key,
        )
    except CreditEngineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return BoostResponse(
        status=result.ledger.status,
        balance=result.ledger.balance,
        video_id=data.video_id,
        boost_amount=result.video_boost_amount,
    )
