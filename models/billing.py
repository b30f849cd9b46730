"""
Billing enums and request models
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SubscriptionPlan(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"
    PAUSED = "PAUSED"
    TRIALING = "TRIALING"
    UNPAID = "UNPAID"


# Every status except CANCELLED; a user may hold at most one of these
NON_TERMINAL_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PENDING,
    SubscriptionStatus.UNPAID,
    SubscriptionStatus.PAUSED,
)


class CheckoutSessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    INACTIVE = "INACTIVE"


class AuthenticatedUser(BaseModel):
    id: str
    email: str


class CheckoutRequest(BaseModel):
    # Validated by the checkout flow so a bad plan yields InvalidPayload
    plan: Optional[str] = None


class CancelRequest(BaseModel):
    subscription_id: Optional[str] = Field(default=None, alias="subscriptionId")

    model_config = {"populate_by_name": True}


class ProviderCheckoutSession(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None


class SubscriptionSummary(BaseModel):
    """Caller-facing view of a Subscription row"""
    id: str
    plan: Optional[str] = None
    status: str
    trial_end: Optional[datetime] = None
    trial_remaining_days: int = 0
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    model_config = {"from_attributes": True}
