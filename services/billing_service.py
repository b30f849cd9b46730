"""
Billing Service - checkout, trial cancellation and billing portal flows
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings, settings as default_settings
from crud.checkout_session import CheckoutSessionRepository
from crud.subscription import SubscriptionRepository
from models.billing import AuthenticatedUser, SubscriptionPlan, SubscriptionStatus, SubscriptionSummary
from services.errors import (
    AlreadySubscribed,
    Forbidden,
    InvalidPayload,
    InvalidState,
    MisconfiguredPricing,
    NoBillingAccount,
    NotFound,
    ProviderError,
)
from services.stripe_provider import StripeProvider
from services.trial_service import TrialService
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

# Statuses that grant access to paid features
ACCESS_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value)


class BillingService:
    """
    Service class for handling billing-related business logic.

    Never writes Subscription.status; that field belongs to the Stripe
    event feed (see services.webhook_service).
    """

    def __init__(self, db: AsyncSession, provider: StripeProvider, settings: Settings = default_settings):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
            provider: Payment provider used for Stripe calls
            settings: Settings with price ids, redirect URLs and trial policy
        """
        self.db = db
        self.provider = provider
        self.settings = settings
        self.subscriptions = SubscriptionRepository(db)
        self.checkout_sessions = CheckoutSessionRepository(db)
        self.trials = TrialService(settings.default_trial_days)

    def _resolve_plan(self, plan) -> SubscriptionPlan:
        try:
            return SubscriptionPlan(plan)
        except ValueError:
            raise InvalidPayload("Invalid payload: plan must be 'monthly' or 'yearly'")

    def _resolve_price_id(self, plan: SubscriptionPlan) -> str:
        price_ids = self.settings.price_ids()
        # Both must be configured, even though only one is used per request
        missing = [name for name, price_id in price_ids.items() if not price_id]
        if missing:
            logger.error(f"Stripe price IDs are not configured for: {', '.join(missing)}")
            raise MisconfiguredPricing("Missing Stripe price IDs")
        return price_ids[plan.value]

    def _build_checkout_params(
        self,
        user: AuthenticatedUser,
        plan: SubscriptionPlan,
        price_id: str,
        trial_days: int,
        carry_forward: bool,
    ) -> dict:
        subscription_data = {
            "metadata": {
                "user_id": user.id,
                "plan": plan.value,
                "trial_carry_forward": "true" if carry_forward else "false",
            },
        }
        if trial_days > 0:
            subscription_data["trial_period_days"] = trial_days
            # Never roll into a paid period without a payment method
            subscription_data["trial_settings"] = {
                "end_behavior": {"missing_payment_method": "cancel"},
            }

        return {
            "mode": "subscription",
            "customer_email": user.email,
            "line_items": [{"price": price_id, "quantity": 1}],
            "payment_method_types": ["card"],
            "success_url": self.settings.success_url,
            "cancel_url": self.settings.cancel_url,
            "metadata": {"user_id": user.id, "plan": plan.value},
            "subscription_data": subscription_data,
        }

    async def create_checkout_session(self, user: AuthenticatedUser, plan: Optional[str]) -> str:
        """
        Create (or reuse) a Stripe Checkout session for a user and plan.

        Flow:
        1. Validate the plan and resolve its Stripe price id
        2. Return the URL of an unexpired ACTIVE session for (user, plan) if one exists
        3. Compute the trial allowance from the last cancelled subscription
        4. Refuse if the user already holds a non-terminal subscription
        5. Create the Stripe session and record it for deduplication

        Steps 2 and 4-5 are separate reads and writes with no lock, so two
        simultaneous requests can both create a Stripe session; the partial
        unique index on checkout_sessions keeps only one of them ACTIVE.

        Args:
            user: Authenticated user (id, email)
            plan: Requested plan value

        Returns:
            Stripe Checkout URL

        Raises:
            InvalidPayload, MisconfiguredPricing, AlreadySubscribed,
            MultipleActiveSubscriptions, ProviderError
        """
        plan = self._resolve_plan(plan)
        price_id = self._resolve_price_id(plan)

        existing = await self.checkout_sessions.find_reusable_session(user.id, plan.value)
        if existing and existing.checkout_url:
            logger.info(f"Reusing checkout session {existing.session_id} for user {user.id} ({plan.value})")
            return existing.checkout_url

        last_cancelled = await self.subscriptions.get_last_cancelled_subscription(user.id)
        trial_days = self.trials.compute_trial_days(last_cancelled)
        carry_forward = self.trials.is_carry_forward(last_cancelled, trial_days)

        active = await self.subscriptions.get_active_subscription(user.id)
        if active is not None:
            raise AlreadySubscribed("You already have an active subscription.")

        params = self._build_checkout_params(user, plan, price_id, trial_days, carry_forward)
        session = await self.provider.create_checkout_session(params)
        if not session or not session.id or not session.url:
            logger.error(f"Stripe returned an incomplete checkout session for user {user.id}: {session!r}")
            raise ProviderError("Failed to create checkout session")

        logger.info(
            f"Created checkout session {session.id} for user {user.id} "
            f"({plan.value}, trial_days={trial_days})"
        )
        await self._record_checkout_session(user, plan, session.id, session.url)
        return session.url

    async def _record_checkout_session(self, user: AuthenticatedUser, plan: SubscriptionPlan, session_id: str, url: str):
        """
        Persist the new session. A failure here is logged, never raised:
        the Stripe session already exists and the user still needs its URL.
        """
        now = utcnow()
        try:
            await self.checkout_sessions.expire_lapsed_sessions(user.id, plan.value, now)
            await self.checkout_sessions.record_session({
                "user_id": user.id,
                "plan": plan.value,
                "session_id": session_id,
                "checkout_url": url,
                "created_at": now,
                "expires_at": now + timedelta(hours=self.settings.checkout_session_ttl_hours),
            })
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to record checkout session {session_id} for user {user.id}: {e}",
                exc_info=True,
            )
            await self.db.rollback()

    async def cancel_trialing_subscription(self, subscription_id: Optional[str], user_id: str) -> str:
        """
        Cancel a subscription that is still in its trial.

        Only the Stripe cancellation is issued here; the local row turns
        CANCELLED when the corresponding Stripe event arrives.

        Args:
            subscription_id: Internal subscription id
            user_id: Id of the requesting user

        Returns:
            Confirmation message

        Raises:
            InvalidPayload, NotFound, Forbidden, InvalidState, ProviderError
        """
        if not subscription_id:
            raise InvalidPayload("Missing subscription ID")

        subscription = await self.subscriptions.get_by_id(str(subscription_id))
        if subscription is None:
            raise NotFound("Subscription not found in database.")

        if subscription.user_id != user_id:
            raise Forbidden("User is not allowed to access the resource")

        if subscription.status != SubscriptionStatus.TRIALING.value:
            raise InvalidState("Only trialing subscriptions can be canceled.")

        if not subscription.provider_subscription_id:
            logger.error(f"Trialing subscription {subscription.id} has no Stripe subscription id")
            raise ProviderError("Subscription is not linked to the payment provider.")

        provider_status = await self.provider.cancel_subscription(subscription.provider_subscription_id)
        if provider_status != "canceled":
            logger.error(
                f"Stripe reported status {provider_status!r} after cancelling {subscription.provider_subscription_id}"
            )
            raise ProviderError("Failed to cancel subscription on Stripe.")

        logger.info(f"Cancelled trialing subscription {subscription.id} for user {user_id}")
        return "Subscription was in trial and has been canceled successfully."

    async def create_billing_portal_session(self, user_id: str) -> str:
        """
        Create a Stripe Billing Portal session for the user's Stripe customer.

        Uses the latest subscription regardless of status, since a former
        subscriber still needs the portal for invoices and payment methods.

        Raises:
            NoBillingAccount: If the user has no subscription or Stripe customer id
            ProviderError: If Stripe fails or returns no URL
        """
        subscription = await self.subscriptions.get_latest_subscription(user_id)
        if subscription is None or not subscription.provider_customer_id:
            raise NoBillingAccount("No active subscription or Stripe customer ID found.")

        url = await self.provider.create_portal_session(
            subscription.provider_customer_id,
            self.settings.portal_return_url,
        )
        if not url:
            raise ProviderError("Failed to create billing portal session")
        return url

    async def get_subscription_status(self, user_id: str) -> dict:
        """
        Read the caller's current subscription.

        Prefers the single non-terminal subscription and falls back to the
        latest one, so former subscribers still see their last state.

        Returns:
            {"subscription": SubscriptionSummary dict or None,
             "has_active_subscription": True while ACTIVE or TRIALING}

        Raises:
            MultipleActiveSubscriptions: If more than one non-terminal record exists
        """
        subscription = await self.subscriptions.get_active_subscription(user_id)
        if subscription is None:
            subscription = await self.subscriptions.get_latest_subscription(user_id)

        if subscription is None:
            return {"subscription": None, "has_active_subscription": False}

        return {
            "subscription": SubscriptionSummary.model_validate(subscription).model_dump(mode="json"),
            "has_active_subscription": subscription.status in ACCESS_STATUSES,
        }
