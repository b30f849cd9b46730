"""
Webhook Service - applies verified Stripe events to local billing state.

This is the only code path that writes Subscription.status and the
COMPLETED / EXPIRED transitions of checkout sessions.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.checkout_session import CheckoutSessionRepository
from crud.subscription import SubscriptionRepository
from models.billing import CheckoutSessionStatus, SubscriptionStatus
from services.errors import UnknownProviderStatus
from services.status_mapper import map_provider_interval, map_provider_status
from services.trial_service import TrialService
from utils.time_utils import from_unix, utcnow

logger = logging.getLogger(__name__)

SUBSCRIPTION_UPSERT_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.paused",
    "customer.subscription.resumed",
}


class WebhookService:
    """
    Service class for processing Stripe webhook events.
    Events arrive already signature-verified, as plain dicts.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the webhook service.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db
        self.subscriptions = SubscriptionRepository(db)
        self.checkout_sessions = CheckoutSessionRepository(db)

    async def process_event(self, event: dict) -> bool:
        """
        Process a Stripe webhook event.

        Args:
            event: Verified Stripe event payload

        Returns:
            True if the event changed (or confirmed) local state, False if it
            was acknowledged without being applied
        """
        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}
        logger.info(f"Processing Stripe webhook event: {event_type} ({event.get('id')})")

        try:
            if event_type == "checkout.session.completed":
                return await self._set_checkout_status(data, CheckoutSessionStatus.COMPLETED)
            if event_type == "checkout.session.expired":
                return await self._set_checkout_status(data, CheckoutSessionStatus.EXPIRED)
            if event_type in SUBSCRIPTION_UPSERT_EVENTS:
                return await self._upsert_subscription(data)
            if event_type == "customer.subscription.deleted":
                return await self._handle_subscription_deleted(data)
            if event_type == "invoice.payment_failed":
                return await self._handle_payment_failed(data)
        except UnknownProviderStatus as e:
            logger.error(f"Skipping {event_type}: {e.message}")
            return False

        logger.info(f"Unhandled Stripe event type: {event_type}")
        return False

    async def _set_checkout_status(self, data: dict, status: CheckoutSessionStatus) -> bool:
        session = await self.checkout_sessions.set_status_by_session_id(data.get("id"), status)
        if session is None:
            logger.warning(f"Checkout session {data.get('id')} not found; cannot mark {status.value}")
            return False
        return True

    def _resolve_owner(self, data: dict, existing) -> Optional[str]:
        metadata = data.get("metadata") or {}
        if metadata.get("user_id"):
            return metadata["user_id"]
        if existing is not None:
            return existing.user_id
        return None

    def _subscription_fields(self, data: dict) -> dict:
        trial_end = from_unix(data.get("trial_end"))
        fields = {
            "status": map_provider_status(data.get("status")).value,
            "provider_customer_id": data.get("customer"),
            "provider_subscription_id": data.get("id"),
            "trial_start": from_unix(data.get("trial_start")),
            "trial_end": trial_end,
            "trial_remaining_days": TrialService.remaining_days(trial_end),
            "cancel_at_period_end": bool(data.get("cancel_at_period_end")),
            "canceled_at": from_unix(data.get("canceled_at")),
        }

        items = (data.get("items") or {}).get("data") or []
        if items:
            recurring = (items[0].get("price") or {}).get("recurring") or {}
            plan = map_provider_interval(recurring.get("interval"))
            if plan is not None:
                fields["plan"] = plan.value
            # Newer API versions report billing periods per item
            fields["current_period_start"] = from_unix(
                data.get("current_period_start") or items[0].get("current_period_start")
            )
            fields["current_period_end"] = from_unix(
                data.get("current_period_end") or items[0].get("current_period_end")
            )
        return fields

    async def _upsert_subscription(self, data: dict) -> bool:
        existing = await self.subscriptions.get_by_provider_subscription_id(data.get("id"))
        user_id = self._resolve_owner(data, existing)
        if not user_id:
            logger.warning(f"No owner found for Stripe subscription {data.get('id')}; event ignored")
            return False

        fields = self._subscription_fields(data)
        fields["user_id"] = user_id

        # A cancelled Stripe subscription is final; anything else is a stale event
        if (
            existing is not None
            and existing.status == SubscriptionStatus.CANCELLED.value
            and fields["status"] != SubscriptionStatus.CANCELLED.value
        ):
            logger.warning(
                f"Ignoring stale {fields['status']} update for cancelled subscription {data.get('id')}"
            )
            return False

        if fields["status"] == SubscriptionStatus.CANCELLED.value:
            fields["trial_consumed"] = self._trial_consumed_on_cancel(data, fields["trial_remaining_days"])

        if existing is None:
            await self.subscriptions.create_subscription(fields)
        else:
            await self.subscriptions.update_subscription(existing, fields)
        return True

    def _trial_consumed_on_cancel(self, data: dict, remaining_days: int) -> bool:
        """
        One-shot carry-forward: unused trial days survive a cancellation only
        when the cancelled trial was not itself a carry-forward.
        """
        metadata = data.get("metadata") or {}
        if metadata.get("trial_carry_forward") == "true":
            return True
        return remaining_days <= 0

    async def _handle_subscription_deleted(self, data: dict) -> bool:
        existing = await self.subscriptions.get_by_provider_subscription_id(data.get("id"))
        if existing is None:
            # Deleted before we ever saw it; record it so trial history is kept
            return await self._upsert_subscription({**data, "status": "canceled"})

        remaining = TrialService.remaining_days(from_unix(data.get("trial_end")))
        await self.subscriptions.update_subscription(existing, {
            "status": SubscriptionStatus.CANCELLED.value,
            "canceled_at": from_unix(data.get("canceled_at")) or utcnow(),
            "trial_remaining_days": remaining,
            "trial_consumed": self._trial_consumed_on_cancel(data, remaining),
        })
        return True

    async def _handle_payment_failed(self, data: dict) -> bool:
        provider_subscription_id = data.get("subscription")
        if not provider_subscription_id:
            return False
        existing = await self.subscriptions.get_by_provider_subscription_id(provider_subscription_id)
        if existing is None:
            logger.warning(f"invoice.payment_failed for unknown subscription {provider_subscription_id}")
            return False
        if existing.status == SubscriptionStatus.CANCELLED.value:
            logger.warning(f"Ignoring invoice.payment_failed for cancelled subscription {provider_subscription_id}")
            return False
        await self.subscriptions.update_subscription(existing, {"status": SubscriptionStatus.UNPAID.value})
        return True
