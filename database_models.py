import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, text

from database import Base
from models.billing import CheckoutSessionStatus
from utils.time_utils import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Subscription(Base):
    """
    A user's relationship to a paid plan, mirrored from Stripe.
    Status is written only by the Stripe event feed.
    """
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    plan = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, index=True)

    provider_customer_id = Column(String, nullable=True, index=True)
    provider_subscription_id = Column(String, unique=True, nullable=True, index=True)

    trial_consumed = Column(Boolean, default=False, nullable=False)
    trial_remaining_days = Column(Integer, default=0, nullable=False)
    trial_start = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)

    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    canceled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class CheckoutSession(Base):
    """
    An in-flight or recently completed Stripe Checkout attempt.
    Reusable only while ACTIVE and before expires_at.
    """
    __tablename__ = "checkout_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    plan = Column(String(20), nullable=False)
    session_id = Column(String, unique=True, nullable=False, index=True)
    checkout_url = Column(String, nullable=False)
    status = Column(String(20), default=CheckoutSessionStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        # At most one ACTIVE session per (user, plan)
        Index(
            "uq_checkout_sessions_active_user_plan",
            "user_id",
            "plan",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )
