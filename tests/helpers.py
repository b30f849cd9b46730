"""
Shared test helpers: a recording fake for the Stripe provider and row builders
"""
import uuid
from datetime import timedelta

from models.billing import ProviderCheckoutSession
from utils.time_utils import utcnow


class FakeStripeProvider:
    """
    Stand-in for StripeProvider that records every call.
    Each checkout session gets a distinct id and URL.
    """

    def __init__(self):
        self.checkout_calls = []
        self.cancel_calls = []
        self.portal_calls = []
        self.cancel_status = "canceled"
        self.checkout_result = "default"
        self.fail_with = None

    async def create_checkout_session(self, params: dict):
        self.checkout_calls.append(params)
        if self.fail_with:
            raise self.fail_with
        if self.checkout_result != "default":
            return self.checkout_result
        n = len(self.checkout_calls)
        return ProviderCheckoutSession(id=f"cs_test_{n}", url=f"https://checkout.stripe.test/c/pay/cs_test_{n}")

    async def cancel_subscription(self, provider_subscription_id: str) -> str:
        self.cancel_calls.append(provider_subscription_id)
        if self.fail_with:
            raise self.fail_with
        return self.cancel_status

    async def create_portal_session(self, customer_id: str, return_url: str):
        self.portal_calls.append((customer_id, return_url))
        if self.fail_with:
            raise self.fail_with
        return f"https://billing.stripe.test/p/session/{customer_id}"


def subscription_row(user_id: str, status: str, **overrides) -> dict:
    """Column values for a Subscription row, as the Stripe event feed would write it."""
    now = utcnow()
    row = {
        "user_id": user_id,
        "plan": "monthly",
        "status": status,
        "provider_customer_id": f"cus_{user_id}",
        "provider_subscription_id": f"sub_{uuid.uuid4().hex[:14]}",
        "trial_consumed": False,
        "trial_remaining_days": 0,
        "created_at": now - timedelta(days=30),
        "updated_at": now - timedelta(days=1),
    }
    row.update(overrides)
    return row
