"""
SubscriptionRepository for database operations on Subscription model
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from database_models import Subscription
from models.billing import SubscriptionStatus, NON_TERMINAL_STATUSES
from services.errors import MultipleActiveSubscriptions

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Repository class for Subscription database operations.
    Encapsulates all database logic for the Subscription model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.id == subscription_id)
        )
        return result.scalar_one_or_none()

    async def get_by_provider_subscription_id(self, provider_subscription_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.provider_subscription_id == provider_subscription_id)
        )
        return result.scalar_one_or_none()

    async def get_active_subscription(self, user_id: str) -> Optional[Subscription]:
        """
        Retrieve the user's single non-terminal subscription.

        Args:
            user_id: Owner of the subscription

        Returns:
            Subscription in ACTIVE, TRIALING, PENDING, UNPAID or PAUSED, or None

        Raises:
            MultipleActiveSubscriptions: If more than one such record exists
        """
        result = await self.db.execute(
            select(Subscription).where(
                Subscription.user_id == user_id,
                Subscription.status.in_([status.value for status in NON_TERMINAL_STATUSES]),
            )
        )
        subscriptions = result.scalars().all()
        if len(subscriptions) > 1:
            logger.error(
                f"Integrity violation: user {user_id} has {len(subscriptions)} non-terminal subscriptions "
                f"({', '.join(s.id for s in subscriptions)})"
            )
            raise MultipleActiveSubscriptions(
                "Multiple active subscriptions found for this account. Please contact support."
            )
        return subscriptions[0] if subscriptions else None

    async def get_last_cancelled_subscription(self, user_id: str) -> Optional[Subscription]:
        """
        Retrieve the most recently cancelled subscription for a user.

        Recency is the cancellation time, falling back to the last update
        for rows the provider never stamped with canceled_at.
        """
        result = await self.db.execute(
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.CANCELLED.value,
            )
            .order_by(
                func.coalesce(Subscription.canceled_at, Subscription.updated_at).desc(),
                Subscription.created_at.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest_subscription(self, user_id: str) -> Optional[Subscription]:
        """Retrieve the most recently created subscription regardless of status."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_subscription(self, subscription_data: dict) -> Subscription:
        """
        Create a new subscription row.

        Args:
            subscription_data: Column values; must include user_id and status

        Returns:
            Created Subscription object
        """
        subscription = Subscription(**subscription_data)
        self.db.add(subscription)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def update_subscription(self, subscription: Subscription, updates: dict) -> Subscription:
        """
        Update subscription fields.

        Args:
            subscription: Subscription object to update
            updates: Dictionary of fields to update (e.g., {"status": "ACTIVE"})

        Returns:
            Updated Subscription object
        """
        for key, value in updates.items():
            if hasattr(subscription, key):
                setattr(subscription, key, value)

        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription
