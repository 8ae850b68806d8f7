# =============================================================================
# Premium Billing - Plan Duration Tests
# =============================================================================

import pytest
from datetime import datetime

from app.blueprints.billing.plans import (
    MONTHLY, PERMANENT, PLAN_POLICIES, PlanPolicy, compute_end_date, get_plan_policy,
    non_recurring_plans,
)
from app.utils.dates import add_months, from_timestamp


class TestPlanPolicy:
    """Tests for the plan duration table."""

    def test_plan_policy_frozen(self):
        """PlanPolicy is immutable."""
        with pytest.raises(AttributeError):
            MONTHLY.months = 3

    def test_monthly_is_one_month(self):
        assert get_plan_policy('monthly') == PlanPolicy(months=1, recurring=True)

    @pytest.mark.parametrize('plan', ['permanent', 'pro', 'lifetime'])
    def test_non_expiring_plans_last_a_century(self, plan):
        assert get_plan_policy(plan) is PERMANENT
        assert PERMANENT.months == 1200

    def test_unknown_plan_defaults_to_monthly(self):
        assert get_plan_policy('enterprise') is MONTHLY
        assert get_plan_policy(None) is MONTHLY

    def test_plan_lookup_ignores_case(self):
        assert get_plan_policy('Lifetime') is PERMANENT

    def test_non_recurring_plans(self):
        assert set(non_recurring_plans()) == {'permanent', 'pro', 'lifetime'}
        assert 'monthly' not in non_recurring_plans()

    def test_all_policies_have_positive_duration(self):
        assert all(policy.months > 0 for policy in PLAN_POLICIES.values())

    def test_compute_end_date_monthly(self):
        start = datetime(2026, 3, 15, 12, 30)
        assert compute_end_date('monthly', start) == datetime(2026, 4, 15, 12, 30)

    def test_compute_end_date_permanent(self):
        start = datetime(2026, 3, 15, 12, 30)
        assert compute_end_date('permanent', start) == datetime(2126, 3, 15, 12, 30)


class TestDateHelpers:
    """Tests for calendar month arithmetic."""

    def test_add_months_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)

    def test_add_months_leap_year(self):
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    def test_add_months_rolls_year(self):
        assert add_months(datetime(2026, 12, 10), 1) == datetime(2027, 1, 10)

    def test_add_months_negative(self):
        assert add_months(datetime(2026, 3, 31), -1) == datetime(2026, 2, 28)

    def test_add_months_century_from_leap_day(self):
        assert add_months(datetime(2028, 2, 29), 1200) == datetime(2128, 2, 29)
        assert add_months(datetime(2024, 2, 29), 1201) == datetime(2124, 3, 29)

    def test_from_timestamp_is_naive_utc(self):
        value = from_timestamp(1760000000)
        assert value == datetime(2025, 10, 9, 8, 53, 20)
        assert value.tzinfo is None

    def test_from_timestamp_none(self):
        assert from_timestamp(None) is None
