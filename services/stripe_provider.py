"""
Stripe Provider - thin async adapter over the Stripe API
"""

import asyncio
import logging
from typing import Optional

import stripe

from config.settings import Settings, settings as default_settings
from models.billing import ProviderCheckoutSession
from services.errors import ProviderError

logger = logging.getLogger(__name__)


class StripeProvider:
    """
    Payment provider client built per request from settings.
    No process-wide stripe.api_key is set; each provider owns its StripeClient.
    """

    def __init__(self, settings: Settings = default_settings):
        """
        Initialize the provider.

        Args:
            settings: Settings holding the Stripe secret key and timeout
        """
        self.timeout = settings.stripe_timeout_seconds
        self._client: Optional[stripe.StripeClient] = None
        if settings.stripe_secret_key:
            self._client = stripe.StripeClient(
                settings.stripe_secret_key,
                http_client=stripe.HTTPXClient(timeout=self.timeout),
                max_network_retries=0,
            )

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot call Stripe.")
            raise ProviderError("STRIPE_SECRET_KEY is not set. Stripe functionality is unavailable.")
        return self._client

    async def _call(self, operation: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Stripe {operation} timed out after {self.timeout}s")
            raise ProviderError(f"Payment provider timed out during {operation}")
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}", exc_info=True)
            raise ProviderError(f"Payment provider error during {operation}: {e.user_message or str(e)}")

    async def create_checkout_session(self, params: dict) -> Optional[ProviderCheckoutSession]:
        """
        Create a Stripe Checkout session.

        Returns:
            ProviderCheckoutSession with id and url, or None if Stripe returned nothing
        """
        session = await self._call(
            "checkout session creation",
            self.client.checkout.sessions.create_async(params=params),
        )
        if session is None:
            return None
        return ProviderCheckoutSession(id=session.id, url=session.url)

    async def cancel_subscription(self, provider_subscription_id: str) -> str:
        """
        Cancel a Stripe subscription immediately.

        Returns:
            The status Stripe reports after cancellation (e.g. "canceled")
        """
        subscription = await self._call(
            "subscription cancellation",
            self.client.subscriptions.cancel_async(provider_subscription_id),
        )
        return subscription.status

    async def create_portal_session(self, customer_id: str, return_url: str) -> Optional[str]:
        """
        Create a Stripe Billing Portal session for an existing customer.

        Returns:
            Portal URL
        """
        portal_session = await self._call(
            "billing portal session creation",
            self.client.billing_portal.sessions.create_async(
                params={"customer": customer_id, "return_url": return_url}
            ),
        )
        return portal_session.url if portal_session else None


def get_payment_provider() -> StripeProvider:
    """FastAPI dependency that constructs a provider for the current request."""
    return StripeProvider(default_settings)
