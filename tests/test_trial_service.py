"""
Unit tests for trial allowance policy
"""
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from config.settings import Settings
from database_models import Subscription
from services.trial_service import TrialService


def _cancelled(trial_consumed: bool, trial_remaining_days: int) -> Subscription:
    return Subscription(
        user_id="user-1",
        status="CANCELLED",
        trial_consumed=trial_consumed,
        trial_remaining_days=trial_remaining_days,
    )


def test_no_history_grants_full_default():
    assert TrialService().compute_trial_days(None) == 14


def test_consumed_trial_grants_nothing():
    assert TrialService().compute_trial_days(_cancelled(True, 9)) == 0


def test_unconsumed_trial_carries_remaining_days():
    trials = TrialService()
    assert trial_days_for(trials, 5) == 5
    assert trial_days_for(trials, 0) == 0


def test_negative_remaining_days_clamp_to_zero():
    assert TrialService().compute_trial_days(_cancelled(False, -3)) == 0


def test_allowance_never_exceeds_default():
    assert TrialService().compute_trial_days(_cancelled(False, 40)) == 14
    assert TrialService(default_trial_days=7).compute_trial_days(None) == 7


def test_carry_forward_detection():
    trials = TrialService()
    assert trials.is_carry_forward(None, 14) is False
    assert trials.is_carry_forward(_cancelled(False, 5), 5) is True
    assert trials.is_carry_forward(_cancelled(True, 5), 0) is False


def test_remaining_days_rounds_up_partial_days():
    now = datetime(2026, 1, 1, 12, 0, 0)
    assert TrialService.remaining_days(now + timedelta(days=4, hours=1), now=now) == 5
    assert TrialService.remaining_days(now + timedelta(days=3), now=now) == 3
    assert TrialService.remaining_days(now - timedelta(seconds=1), now=now) == 0
    assert TrialService.remaining_days(None, now=now) == 0


def trial_days_for(trials: TrialService, remaining: int) -> int:
    return trials.compute_trial_days(_cancelled(False, remaining))


@pytest.mark.parametrize("days", [15, 30, -1])
def test_default_trial_days_setting_is_bounded(days):
    with pytest.raises(ValidationError):
        Settings(DEFAULT_TRIAL_DAYS=days)


def test_default_trial_days_setting_accepts_bounds():
    assert Settings(DEFAULT_TRIAL_DAYS=0).default_trial_days == 0
    assert Settings(DEFAULT_TRIAL_DAYS=14).default_trial_days == 14
