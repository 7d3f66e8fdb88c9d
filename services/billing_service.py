"""
Billing Service - Stripe checkout sessions and webhook handling
"""

import calendar
import json
import logging
from datetime import datetime
from typing import Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import (
    IS_PRODUCTION,
    PLAN_FREE,
    PLAN_PREMIUM_MONTHLY,
    PLAN_PREMIUM_YEARLY,
    settings,
)
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from services.premium_service import evaluate_subscription
from utils.shared_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PLAN_ID = "pruvodce"

# Plan ids used by the pricing page
PLANS = {
    "poutnik": {"name": "Pilgrim (Basic)", "price": 0, "type": PLAN_FREE},
    "pruvodce": {"name": "Star Guide (Monthly)", "price": 19900, "type": PLAN_PREMIUM_MONTHLY},
    "osviceni": {"name": "Enlightenment (Yearly)", "price": 119000, "type": PLAN_PREMIUM_YEARLY},
}


class CheckoutError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class WebhookVerificationError(Exception):
    """The webhook could not be authenticated; nothing was changed."""


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day (Jan 31 + 1 month = Feb 28/29)."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_period_end(plan_type: str, now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    if plan_type == PLAN_PREMIUM_YEARLY:
        return add_months(now, 12)
    return add_months(now, 1)


class BillingService:
    """
    Service class for handling billing-related business logic.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db
        self.subscriptions = SubscriptionRepository(db)
        self.users = UserRepository(db)

    async def create_checkout_session(self, user: dict, plan_id: Optional[str]) -> dict:
        """
        Create a Stripe Checkout session for a one-off plan payment.
        Unknown plan ids fall back to the monthly plan.

        Args:
            user: Authenticated user dict (id, email)
            plan_id: Plan id from the pricing page

        Returns:
            {"id": session id, "url": checkout url}

        Raises:
            CheckoutError: free plan requested, Stripe not configured, or Stripe failed
        """
        plan = PLANS.get(plan_id or "", PLANS[DEFAULT_PLAN_ID])
        if plan["price"] == 0:
            raise CheckoutError("Cannot create session for free plan", status_code=400)

        if not settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot create checkout session.")
            raise CheckoutError("Payments are not configured", status_code=503)

        stripe.api_key = settings.stripe_secret_key
        try:
            checkout_session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": "czk",
                        "product_data": {
                            "name": plan["name"],
                            "description": "Access to every premium feature of Mystic Star",
                        },
                        "unit_amount": plan["price"],
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=f"{settings.app_url}/profile?payment=success",
                cancel_url=f"{settings.app_url}/pricing?payment=cancel",
                customer_email=user["email"],
                client_reference_id=user["id"],
                metadata={
                    "userId": user["id"],
                    "planType": plan["type"],
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            raise CheckoutError("Payment session could not be created", status_code=502) from e

        logger.info(f"Checkout session created for user {user['id']} plan={plan['type']}")
        return {"id": checkout_session.id, "url": checkout_session.url}

    def verify_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Authenticate and parse a webhook payload.

        Without a webhook secret, production rejects every event and
        development accepts the payload unverified.

        Raises:
            WebhookVerificationError
        """
        secret = settings.stripe_webhook_secret
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload

        if secret:
            if not signature:
                raise WebhookVerificationError("Missing Stripe-Signature header")
            try:
                stripe.WebhookSignature.verify_header(
                    body, signature, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
                )
            except stripe.SignatureVerificationError as e:
                logger.error(f"Stripe webhook signature verification failed: {e}")
                raise WebhookVerificationError("Webhook signature verification failed") from e
        elif IS_PRODUCTION:
            logger.error("STRIPE_WEBHOOK_SECRET is required in production. Rejecting webhook.")
            raise WebhookVerificationError("Webhook secret not configured")
        else:
            logger.warning("Dev mode: STRIPE_WEBHOOK_SECRET not set, skipping signature verification.")

        try:
            event = json.loads(body)
        except ValueError as e:
            raise WebhookVerificationError("Invalid payload format") from e
        if not isinstance(event, dict):
            raise WebhookVerificationError("Invalid payload format")
        return event

    async def apply_webhook_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Verify a webhook and apply it. Only checkout.session.completed
        changes state: the subscription is upserted as active and the user's
        is_premium flag is set.

        Returns:
            {"type": event type, "applied": bool}
        """
        event = self.verify_event(payload, signature)
        event_type = event.get("type")
        logger.info(f"Processing Stripe webhook event: {event_type}")

        if event_type != "checkout.session.completed":
            return {"type": event_type, "applied": False}

        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        user_id = session.get("client_reference_id") or metadata.get("userId")
        plan_type = metadata.get("planType") or PLAN_PREMIUM_MONTHLY
        if not user_id:
            logger.error("checkout.session.completed without a user reference; ignoring")
            return {"type": event_type, "applied": False}

        period_end = compute_period_end(plan_type)
        await self.subscriptions.upsert(user_id, plan_type, "active", period_end)
        await self.users.set_premium_flag(user_id, True)
        logger.info(f"User {user_id} upgraded to {plan_type} until {period_end.isoformat()}")
        return {"type": event_type, "applied": True}

    async def subscription_status(self, user_id: str) -> dict:
        subscription = await self.subscriptions.get_by_user_id(user_id)
        is_premium, _ = evaluate_subscription(subscription)
        if subscription is None:
            return {"planType": PLAN_FREE, "status": "inactive", "currentPeriodEnd": None, "isPremium": False}
        period_end = as_utc(subscription.current_period_end)
        return {
            "planType": subscription.plan_type,
            "status": subscription.status,
            "currentPeriodEnd": period_end.isoformat() if period_end else None,
            "isPremium": is_premium,
        }
