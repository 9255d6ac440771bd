"""
Stripe payment service for credit package checkout.

Creates PaymentIntents for credit packages, retrieves them when the client
reports a finished payment, and verifies webhook signatures.
"""

import json
import logging
from typing import Any, Optional

import stripe

from ....platform.config import settings
from ....services.credit_packages import CreditPackage

logger = logging.getLogger(__name__)


def _as_dict(stripe_object: Any) -> dict:
    if isinstance(stripe_object, dict) and not isinstance(stripe_object, stripe.StripeObject):
        return stripe_object
    return json.loads(str(stripe_object))


class StripeService:
    """Service for credit package payments through Stripe."""

    def __init__(self, api_key: str):
        """
        Initialise the Stripe service.

        Args:
            api_key: Stripe secret API key.
        """
        stripe.api_key = api_key
        logger.info("StripeService initialised")

    def create_payment_intent(self, user_id: str, package: CreditPackage) -> dict:
        """
        Create a PaymentIntent for a credit package.

        The package terms are written into the intent metadata so the webhook
        and the purchase-complete call can be reconciled against them.

        Args:
            user_id: Buyer's user id.
            package: Server-side package definition.

        Returns:
            Dict with keys: success, payment_intent_id, client_secret.
        """
        try:
            currency_code = (settings.PAYMENT_CURRENCY or "usd").lower()
            logger.info(
                "Creating credit package payment intent (user_id=%s, package_id=%s, amount=%d %s-minor-units)",
                user_id,
                package.id,
                package.price,
                currency_code,
            )

            payment_intent = stripe.PaymentIntent.create(
                amount=package.price,
                currency=currency_code,
                automatic_payment_methods={"enabled": True},
                description=f"{package.label} credit package",
                metadata={
                    "userId": user_id,
                    "packageId": package.id,
                    "credits": str(package.credits),
                    "bonus": str(package.bonus),
                    "totalCredits": str(package.total_credits),
                },
            )

            logger.info("PaymentIntent created successfully (id=%s)", payment_intent.id)

            return {
                "success": True,
                "payment_intent_id": payment_intent.id,
                "client_secret": payment_intent.client_secret,
            }
        except stripe.StripeError as e:
            logger.error("Stripe error creating payment intent: %s", str(e))
            return {
                "success": False,
                "payment_intent_id": "",
                "client_secret": "",
            }

    def retrieve_payment_intent(self, payment_intent_id: str) -> Optional[dict]:
        """
        Fetch a PaymentIntent as a plain dict.

        Returns:
            The PaymentIntent payload, or None when Stripe cannot return it.
        """
        try:
            payment_intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            return _as_dict(payment_intent)
        except stripe.StripeError as e:
            logger.error("Stripe error retrieving payment intent %s: %s", payment_intent_id, str(e))
            return None

    @staticmethod
    def construct_event(payload: bytes, sig_header: str, secret: str) -> dict:
        """
        Verify a webhook signature and decode the event.

        Raises:
            ValueError: The payload is not valid JSON.
            stripe.SignatureVerificationError: The signature does not match.
        """
        stripe.Webhook.construct_event(payload, sig_header, secret)
        return json.loads(payload)
