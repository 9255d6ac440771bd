# Payment provider webhooks that settle credit purchases.
from __future__ import annotations

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...components.integrations.stripe.service import StripeService
from ...platform.config import settings
from ...platform.database import get_db
from ...services.credit_ledger_service import APPLIED
from ...services.errors import NotFoundError, PurchaseValidationError
from ...services.purchase_reconciliation_service import (
    confirmation_from_payment_intent,
    reconcile_purchase,
)

logger = logging.getLogger("shipshow.webhooks")

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Stripe webhooks and credit purchases on payment_intent.succeeded."""
    if settings.MVP_DISABLE_STRIPE:
        raise HTTPException(status_code=503, detail="Stripe integration is disabled for MVP")
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise HTTPException(status_code=503, detail="Stripe webhook secret is not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")
    try:
        event = StripeService.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid payload") from exc
    except stripe.SignatureVerificationError as exc:
        logger.warning("Stripe webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature") from exc

    event_type = event.get("type")
    if event_type != "payment_intent.succeeded":
        return {"status": "ignored", "event_type": event_type}

    intent = (event.get("data") or {}).get("object") or {}
    try:
        result = reconcile_purchase(db, confirmation_from_payment_intent(intent))
    except PurchaseValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc

    if result.status != APPLIED:
        return {"status": "already_processed", "credited": False, "credits": result.credits}
    return {"status": "received", "credited": True, "credits": result.credits}
