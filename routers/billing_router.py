"""
Billing Router - API endpoints for Stripe billing integration
Webhook is defined FIRST to avoid middleware conflicts
"""

import json
import logging
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from auth import get_current_user
from config.settings import settings
from database import get_db
from models.billing import AuthenticatedUser, CancelRequest, CheckoutRequest
from services.billing_service import BillingService
from services.errors import BillingError
from services.stripe_provider import StripeProvider, get_payment_provider
from services.webhook_service import WebhookService
from utils.responses import success_response, error_response, billing_error_response

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/billing", tags=["billing"])


# WEBHOOK ENDPOINT - MUST BE DEFINED FIRST TO AVOID MIDDLEWARE CONFLICTS
@billing_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events with signature verification.

    Only verified events are processed. Once verified, the event is always
    acknowledged with 200 so Stripe does not retry events we chose to skip.

    Args:
        request: FastAPI Request object (for raw body)
        db: Database session dependency

    Returns:
        JSON response with {received, handled}
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
        return error_response("webhook_not_configured", status=500, message="Webhook secret not configured")

    # Get raw request body (required for signature verification)
    payload = await request.body()

    stripe_signature = request.headers.get("stripe-signature")
    if not stripe_signature:
        logger.error("Missing Stripe-Signature header")
        return error_response("invalid_signature", status=400, message="Missing signature header")

    try:
        stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {e}")
        return error_response("invalid_signature", status=400, message="Invalid webhook signature")
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        return error_response("invalid_payload", status=400, message="Invalid payload format")

    event = json.loads(payload)
    handled = await WebhookService(db).process_event(event)
    return JSONResponse(
        status_code=200,
        content={
            "ok": True,
            "received": True,
            "handled": handled,
            "event_type": event.get("type"),
        }
    )


@billing_router.post("/checkout")
async def create_checkout_session(
    body: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    provider: StripeProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Create or reuse a Stripe Checkout session for the requested plan.

    Returns:
        JSON envelope with {"url": checkout_url}
    """
    try:
        url = await BillingService(db, provider).create_checkout_session(user, body.plan)
    except BillingError as e:
        return billing_error_response(e)
    return success_response({"url": url})


@billing_router.post("/cancel")
async def cancel_subscription(
    body: CancelRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    provider: StripeProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel the caller's subscription while it is still trialing.

    Returns:
        JSON envelope with {"message": ...}
    """
    try:
        message = await BillingService(db, provider).cancel_trialing_subscription(body.subscription_id, user.id)
    except BillingError as e:
        return billing_error_response(e)
    return success_response({"message": message}, message=message)


@billing_router.post("/portal")
async def create_billing_portal_session(
    user: AuthenticatedUser = Depends(get_current_user),
    provider: StripeProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a Stripe Billing Portal session for the caller's Stripe customer.

    Returns:
        JSON envelope with {"url": portal_url}
    """
    try:
        url = await BillingService(db, provider).create_billing_portal_session(user.id)
    except BillingError as e:
        return billing_error_response(e)
    return success_response({"url": url})


@billing_router.get("/subscription")
async def get_subscription(
    user: AuthenticatedUser = Depends(get_current_user),
    provider: StripeProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Return the caller's current subscription (non-terminal, else latest).

    Returns:
        JSON envelope with {"subscription": {...} | None, "has_active_subscription": bool}
    """
    try:
        status = await BillingService(db, provider).get_subscription_status(user.id)
    except BillingError as e:
        return billing_error_response(e)
    return success_response(status)
