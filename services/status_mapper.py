"""
Stripe subscription status -> internal SubscriptionStatus
"""
from models.billing import SubscriptionPlan, SubscriptionStatus
from services.errors import UnknownProviderStatus

STRIPE_STATUS_MAP = {
    "trialing": SubscriptionStatus.TRIALING,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.UNPAID,
    "unpaid": SubscriptionStatus.UNPAID,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete": SubscriptionStatus.PENDING,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
    "paused": SubscriptionStatus.PAUSED,
}

# Stripe price recurring interval -> plan
STRIPE_INTERVAL_MAP = {
    "month": SubscriptionPlan.MONTHLY,
    "year": SubscriptionPlan.YEARLY,
}


def map_provider_status(raw: str) -> SubscriptionStatus:
    """
    Map a Stripe subscription status string to the internal status.

    Raises:
        UnknownProviderStatus: For any status not in the table. Never
            defaults, since a guessed status would corrupt billing state.
    """
    status = STRIPE_STATUS_MAP.get(raw) if isinstance(raw, str) else None
    if status is None:
        raise UnknownProviderStatus(f"Unknown Stripe subscription status: {raw!r}")
    return status


def map_provider_interval(interval: str):
    """Map a Stripe recurring interval to a plan, or None when unrecognised."""
    if not interval:
        return None
    return STRIPE_INTERVAL_MAP.get(interval.lower())
