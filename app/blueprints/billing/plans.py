"""
Plan duration policy for checkout fulfillment.
Maps a plan identifier to how long the paid period lasts.
"""
from dataclasses import dataclass

from app.utils.dates import add_months


@dataclass(frozen=True)
class PlanPolicy:
    """Immutable plan duration definition."""
    months: int
    recurring: bool


MONTHLY = PlanPolicy(months=1, recurring=True)
# Non-expiring grants are stored as a far-future end date
PERMANENT = PlanPolicy(months=100 * 12, recurring=False)

PLAN_POLICIES = {
    'monthly': MONTHLY,
    'permanent': PERMANENT,
    'pro': PERMANENT,
    'lifetime': PERMANENT,
}


def get_plan_policy(plan_name: str) -> PlanPolicy:
    """Get the policy for a plan name. Defaults to monthly."""
    return PLAN_POLICIES.get((plan_name or '').lower(), MONTHLY)


def compute_end_date(plan_name, start):
    """End of the paid period starting at ``start`` for ``plan_name``."""
    return add_months(start, get_plan_policy(plan_name).months)


def non_recurring_plans():
    """Plan names whose period is not extended or replaced by renewals."""
    return tuple(name for name, policy in PLAN_POLICIES.items() if not policy.recurring)
