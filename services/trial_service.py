"""
Trial Service for computing trial allowances on (re-)subscription
"""
import math
from datetime import datetime
from typing import Optional

from database_models import Subscription
from utils.time_utils import utcnow

DEFAULT_TRIAL_DAYS = 14
SECONDS_PER_DAY = 60 * 60 * 24


class TrialService:
    """
    Service for trial allowance policy.
    A cancelled trial carries its unused days forward exactly once.
    """

    def __init__(self, default_trial_days: int = DEFAULT_TRIAL_DAYS):
        """
        Initialize the trial service.

        Args:
            default_trial_days: Allowance for users with no cancelled subscription
        """
        self.default_trial_days = default_trial_days

    def compute_trial_days(self, last_cancelled: Optional[Subscription]) -> int:
        """
        Compute how many trial days a new checkout attempt is entitled to.

        Policy:
        1. No cancelled subscription: the full default allowance
        2. Last cancelled subscription consumed its trial: 0
        3. Otherwise: the unused days left on that subscription

        Args:
            last_cancelled: The user's most recent CANCELLED subscription, if any

        Returns:
            Trial days in [0, default_trial_days]
        """
        if last_cancelled is None:
            return self.default_trial_days

        if last_cancelled.trial_consumed:
            return 0

        remaining = last_cancelled.trial_remaining_days or 0
        return min(max(0, remaining), self.default_trial_days)

    def is_carry_forward(self, last_cancelled: Optional[Subscription], trial_days: int) -> bool:
        """True when a granted allowance comes from a previous cancelled trial."""
        return last_cancelled is not None and trial_days > 0

    @staticmethod
    def remaining_days(trial_end: Optional[datetime], now: Optional[datetime] = None) -> int:
        """
        Whole trial days left until trial_end, rounded up; 0 once it has passed.
        """
        if trial_end is None:
            return 0
        seconds_left = (trial_end - (now or utcnow())).total_seconds()
        if seconds_left <= 0:
            return 0
        return math.ceil(seconds_left / SECONDS_PER_DAY)
