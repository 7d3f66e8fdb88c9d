"""
Billing Router - Stripe checkout, subscription status and the webhook
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from database import get_db
from models.account import CheckoutRequest
from services.billing_service import BillingService
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

# Create billing routers
billing_router = APIRouter(prefix="/api/payment", tags=["billing"])
webhook_router = APIRouter(tags=["billing"])


@webhook_router.post("/webhook/stripe")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Stripe webhook events.

    The raw body is required for signature verification. Events that
    cannot be verified are answered with 400 before anything is written.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    result = await BillingService(db).apply_webhook_event(payload, signature)
    log_endpoint_event("/webhook/stripe", None, details=result)
    return {"received": True}


@billing_router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutRequest,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a Stripe Checkout session for the chosen plan.

    Returns:
        {"id": session id, "url": checkout url}
    """
    session = await BillingService(db).create_checkout_session(user, request.plan_id)
    log_endpoint_event("/api/payment/create-checkout-session", user["id"], details={"plan": request.plan_id})
    return session


@billing_router.get("/subscription/status")
async def subscription_status(user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    status = await BillingService(db).subscription_status(user["id"])
    return {"success": True, **status}
