"""
CheckoutSessionRepository for database operations on CheckoutSession model
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from database_models import CheckoutSession
from models.billing import CheckoutSessionStatus
from utils.time_utils import utcnow


class CheckoutSessionRepository:
    """
    Repository class for CheckoutSession database operations.
    Tracks outstanding Stripe Checkout sessions per user and plan.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def find_reusable_session(
        self,
        user_id: str,
        plan: str,
        now: Optional[datetime] = None,
    ) -> Optional[CheckoutSession]:
        """
        Return the newest ACTIVE session for (user, plan) if it has not expired.

        Expiry is detected here at read time only; an expired row is treated
        as absent and left untouched.

        Args:
            user_id: Owner of the session
            plan: Plan value (e.g. "monthly")
            now: Reference time, defaults to the current UTC time

        Returns:
            CheckoutSession if a reusable one exists, None otherwise
        """
        result = await self.db.execute(
            select(CheckoutSession)
            .where(
                CheckoutSession.user_id == user_id,
                CheckoutSession.plan == plan,
                CheckoutSession.status == CheckoutSessionStatus.ACTIVE.value,
            )
            .order_by(CheckoutSession.created_at.desc(), CheckoutSession.id.desc())
            .limit(1)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return None
        if session.expires_at <= (now or utcnow()):
            return None
        return session

    async def record_session(self, session_data: dict) -> CheckoutSession:
        """
        Insert a new checkout session row. Does not deduplicate.

        Args:
            session_data: Dictionary containing session data. Must include:
                - user_id: str
                - plan: str
                - session_id: str (Stripe checkout session id)
                - checkout_url: str
                - expires_at: datetime
                Optional:
                - status: str (defaults to ACTIVE)
                - created_at: datetime (defaults to now)

        Returns:
            Created CheckoutSession object
        """
        session = CheckoutSession(
            user_id=session_data["user_id"],
            plan=session_data["plan"],
            session_id=session_data["session_id"],
            checkout_url=session_data["checkout_url"],
            status=session_data.get("status", CheckoutSessionStatus.ACTIVE.value),
            created_at=session_data.get("created_at") or utcnow(),
            expires_at=session_data["expires_at"],
        )
        self.db.add(session)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def expire_lapsed_sessions(self, user_id: str, plan: str, now: Optional[datetime] = None) -> int:
        """
        Move ACTIVE sessions for (user, plan) whose expires_at has passed to EXPIRED.

        Only called on the write path, right before a replacement session is
        recorded, so the one-ACTIVE-per-(user, plan) index stays satisfiable.

        Returns:
            Number of rows transitioned
        """
        result = await self.db.execute(
            update(CheckoutSession)
            .where(
                CheckoutSession.user_id == user_id,
                CheckoutSession.plan == plan,
                CheckoutSession.status == CheckoutSessionStatus.ACTIVE.value,
                CheckoutSession.expires_at <= (now or utcnow()),
            )
            .values(status=CheckoutSessionStatus.EXPIRED.value)
        )
        return result.rowcount or 0

    async def set_status_by_session_id(self, session_id: str, status: CheckoutSessionStatus) -> Optional[CheckoutSession]:
        """
        Update the status of the session with the given Stripe session id.

        Returns:
            Updated CheckoutSession, or None if no row matches
        """
        result = await self.db.execute(
            select(CheckoutSession).where(CheckoutSession.session_id == session_id)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return None
        session.status = status.value
        await self.db.flush()
        return session

